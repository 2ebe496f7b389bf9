# graphbot/slackapp/dashboards.py

"""
The dashboard registry.

Dashboards are configured once and read by every request and task. The active
registry is an immutable snapshot held behind one module-level reference;
`install` builds a new snapshot and swaps the reference, so readers never take
a lock and never see a half-built registry.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping

from .errors import ConfigError, NotFoundError
from .utils import read_yaml_document

LOGGER = logging.getLogger(__name__)

# Keys of a dashboard entry in the configuration document.
DASHBOARD_FIELDS = {
    "name": "name",
    "dashboard_id": "dashboardId",
    "dashboard_slug": "dashboardName",
    "org_id": "orgId",
    "panel_id": "panelId",
}


@dataclass(frozen=True)
class Dashboard:
    """Render coordinates of one panel, addressed by its command name."""

    name: str
    dashboard_id: str
    dashboard_slug: str
    org_id: str
    panel_id: str


_registry: Mapping[str, Dashboard] = MappingProxyType({})


def _field_text(entry: Dict[str, Any], key: str, index: int) -> str:
    value = entry.get(key)
    if value is None or value == "":
        raise ConfigError(f"dashboard #{index} is missing '{key}'")
    # bool is an int subclass; true/yes is never a valid identifier.
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ConfigError(f"dashboard #{index} has an invalid '{key}': {value!r}")
    return str(value)


def parse_dashboards(entries: Any) -> List[Dashboard]:
    """Builds Dashboard entities from the ``dashboards`` list of the config document."""
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ConfigError("'dashboards' must be a list")

    dashboards = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigError(f"dashboard #{index} must be a mapping")
        values = {}
        for attr, key in DASHBOARD_FIELDS.items():
            values[attr] = _field_text(entry, key, index)
        dashboards.append(Dashboard(**values))
    return dashboards


def build_registry(dashboards: Iterable[Dashboard]) -> Mapping[str, Dashboard]:
    """Indexes dashboards by name. Names must be unique."""
    by_name: Dict[str, Dashboard] = {}
    for dashboard in dashboards:
        if dashboard.name in by_name:
            raise ConfigError(f"dashboard name '{dashboard.name}' is configured twice")
        by_name[dashboard.name] = dashboard
    return MappingProxyType(by_name)


def install(dashboards: Iterable[Dashboard]) -> Mapping[str, Dashboard]:
    """Makes a new snapshot the active registry and returns it."""
    global _registry
    snapshot = build_registry(dashboards)
    # A single reference assignment; readers see the old or the new snapshot.
    _registry = snapshot
    LOGGER.info(f"Dashboard registry loaded with {len(snapshot)} dashboard(s).")
    return snapshot


def load(path) -> Mapping[str, Dashboard]:
    """
    Reads the dashboards from a configuration file and installs them.

    The active registry is left untouched if the file cannot be read or parsed.
    """
    document = read_yaml_document(path)
    return install(parse_dashboards(document.get("dashboards")))


def current() -> Mapping[str, Dashboard]:
    return _registry


def resolve(name: str) -> Dashboard:
    """Exact, case-sensitive lookup by command name."""
    try:
        return _registry[name]
    except KeyError:
        raise NotFoundError(f"no graph named {name!r}") from None
