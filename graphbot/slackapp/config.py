# graphbot/slackapp/config.py

"""
Loading of the bot's configuration document.

The YAML document has three sections::

    slack:
      token: xoxb-...
      secret: ...
      addr: ":8080"
      command: /graph
    grafana:
      endpoint: https://grafana.example.com
      auth_header: Authorization          # optional
      auth_value: Bearer ...              # optional
      use_client_auth: false              # optional
      client_auth_p12: /etc/graphbot/client.p12
    dashboards:
      - name: cpu-usage
        dashboardId: AbCdEf
        dashboardName: node-exporter
        orgId: 1
        panelId: 2

Secrets can be supplied by the environment instead of the file, which wins
when both are set.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from .dashboards import Dashboard, build_registry, parse_dashboards
from .errors import ConfigError
from .utils import read_yaml_document

LOGGER = logging.getLogger(__name__)

DEFAULT_COMMAND = "/graph"
DEFAULT_ADDR = ":8080"

# Environment variable -> (section, key) it overrides.
ENVIRONMENT_OVERRIDES = {
    "SLACK_BOT_TOKEN": ("slack", "token"),
    "SLACK_SIGNING_SECRET": ("slack", "secret"),
    "GRAFANA_AUTH_VALUE": ("grafana", "auth_value"),
    "CLIENT_AUTH_PASSWORD": ("grafana", "client_auth_password"),
}


@dataclass(frozen=True)
class SlackSettings:
    token: str = ""
    secret: str = ""
    addr: str = DEFAULT_ADDR
    command: str = DEFAULT_COMMAND


@dataclass(frozen=True)
class GrafanaSettings:
    endpoint: str
    auth_header: Optional[str] = None
    auth_value: Optional[str] = None
    use_client_auth: bool = False
    client_auth_p12: Optional[str] = None
    client_auth_password: Optional[str] = None
    timeout: Optional[float] = None


@dataclass(frozen=True)
class BotConfig:
    slack: SlackSettings
    grafana: GrafanaSettings
    dashboards: Tuple[Dashboard, ...] = ()


def _section(document: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = document.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return dict(section)


def _optional_str(section: Dict[str, Any], key: str) -> Optional[str]:
    value = section.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _parse_flag(section: Dict[str, Any], key: str) -> bool:
    value = section.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigError(f"grafana.{key} must be true or false, got {value!r}")
    return value


def _parse_timeout(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"grafana.timeout must be a number, got {value!r}") from None
    if timeout <= 0:
        raise ConfigError("grafana.timeout must be positive")
    return timeout


def parse_config(document: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> BotConfig:
    """Validates a parsed configuration document and applies environment overrides."""
    environ = os.environ if environ is None else environ
    sections = {"slack": _section(document, "slack"), "grafana": _section(document, "grafana")}
    for variable, (section, key) in ENVIRONMENT_OVERRIDES.items():
        if environ.get(variable):
            sections[section][key] = environ[variable]

    slack = sections["slack"]
    slack_settings = SlackSettings(
        token=str(slack.get("token") or ""),
        secret=str(slack.get("secret") or ""),
        addr=str(slack.get("addr") or DEFAULT_ADDR),
        command=str(slack.get("command") or DEFAULT_COMMAND),
    )
    if not slack_settings.token:
        LOGGER.warning("No Slack bot token configured; image uploads will fail.")
    if not slack_settings.secret:
        LOGGER.warning("No Slack signing secret configured; every request will be rejected.")

    grafana = sections["grafana"]
    endpoint = _optional_str(grafana, "endpoint")
    if endpoint is None:
        raise ConfigError("grafana.endpoint is required")
    grafana_settings = GrafanaSettings(
        endpoint=endpoint,
        auth_header=_optional_str(grafana, "auth_header"),
        auth_value=_optional_str(grafana, "auth_value"),
        use_client_auth=_parse_flag(grafana, "use_client_auth"),
        client_auth_p12=_optional_str(grafana, "client_auth_p12"),
        client_auth_password=_optional_str(grafana, "client_auth_password"),
        timeout=_parse_timeout(grafana.get("timeout")),
    )
    if grafana_settings.use_client_auth and not grafana_settings.client_auth_p12:
        raise ConfigError("grafana.use_client_auth requires grafana.client_auth_p12")

    dashboards = parse_dashboards(document.get("dashboards"))
    # Rejects duplicate names before anything is installed.
    build_registry(dashboards)

    return BotConfig(slack=slack_settings, grafana=grafana_settings, dashboards=tuple(dashboards))


def load_config(path, environ: Optional[Mapping[str, str]] = None) -> BotConfig:
    """Reads and validates the configuration file at ``path``."""
    if not path:
        raise ConfigError("no configuration file set (GRAPHBOT_CONFIG_FILE)")
    LOGGER.info(f"Loading configuration from {path}")
    return parse_config(read_yaml_document(path), environ=environ)
