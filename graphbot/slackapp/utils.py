# graphbot/slackapp/utils.py

"""
Security and Utility Functions for the Slack App.

This module contains the request-level helpers shared by the views: a view
decorator that verifies the authenticity of every incoming request from
Slack, the parser for slash-command form payloads, and the YAML reader used
by the configuration loader.
"""

# Standard library imports
import logging
import urllib.parse
from dataclasses import dataclass
from functools import wraps
from typing import Any, Dict

# Third-party imports
import yaml
from django.apps import apps
from django.http import HttpRequest, HttpResponse
from slack_sdk.signature import SignatureVerifier

# Local application imports
from .errors import ConfigError, VerificationError

# Initialize a logger for this module.
logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Slack-Signature"
TIMESTAMP_HEADER = "X-Slack-Request-Timestamp"


def _signing_headers(request: HttpRequest) -> Dict[str, str]:
    """Returns the signature and timestamp headers, or raises if they are unusable."""
    signature = request.headers.get(SIGNATURE_HEADER)
    timestamp = request.headers.get(TIMESTAMP_HEADER)
    if not signature or not timestamp:
        raise VerificationError("missing Slack signature or timestamp header")
    if not timestamp.isdigit():
        raise VerificationError(f"malformed Slack timestamp header: {timestamp!r}")
    return {"signature": signature, "timestamp": timestamp}


def slack_verification_required(view_func):
    """
    A Django view decorator to verify that an incoming request is from Slack.

    Slack signs every request with the app's signing secret: the signature is
    an HMAC-SHA256 over ``v0:{timestamp}:{raw body}``. Verification is
    delegated to `slack_sdk.signature.SignatureVerifier`, which also rejects
    timestamps more than five minutes away from the local clock.

    Outcomes:
    -   Missing or malformed signing headers, or no signing secret configured:
        500. The verifier could not even be set up.
    -   Signature mismatch or a stale timestamp: 401.
    -   Otherwise the wrapped view runs.

    Usage:
        @slack_verification_required
        def my_slack_view(request):
            # This code will only run if the request is verified.
            ...
    """
    @wraps(view_func)
    def wrapper(request: HttpRequest, *args, **kwargs):
        # --- 1. Set up the verifier from the app secret and request headers ---
        signing_secret = apps.get_app_config("slackapp").bot_config.slack.secret
        if not signing_secret:
            logger.error("Slack signing secret is not configured.")
            return HttpResponse(status=500)
        try:
            headers = _signing_headers(request)
        except VerificationError as e:
            logger.warning(f"Rejecting Slack request: {e}")
            return HttpResponse(status=500)

        # --- 2. Check the signature over the exact raw body ---
        verifier = SignatureVerifier(signing_secret)
        try:
            valid = verifier.is_valid(
                body=request.body,
                timestamp=headers["timestamp"],
                signature=headers["signature"],
            )
        except UnicodeDecodeError:
            valid = False

        if not valid:
            logger.warning("Slack signature verification failed.")
            return HttpResponse(status=401)
        return view_func(request, *args, **kwargs)

    return wrapper


@dataclass(frozen=True)
class SlashCommand:
    """The fields of a slash-command payload this app acts on."""

    command: str
    text: str
    channel_id: str
    user_id: str = ""
    user_name: str = ""


def parse_slash_command(body: bytes) -> SlashCommand:
    """
    Parses the form-encoded body Slack posts for a slash command.

    Raises:
        ValueError: if the body is not valid UTF-8 form data or lacks the
            command name or the originating channel.
    """
    fields = urllib.parse.parse_qs(body.decode("utf-8"), keep_blank_values=True)

    def first(key: str) -> str:
        return fields.get(key, [""])[0]

    command = SlashCommand(
        command=first("command"),
        text=first("text"),
        channel_id=first("channel_id"),
        user_id=first("user_id"),
        user_name=first("user_name"),
    )
    if not command.command or not command.channel_id:
        raise ValueError("slash command payload is missing 'command' or 'channel_id'")
    return command


_NUMERIC_TAGS = ("tag:yaml.org,2002:int", "tag:yaml.org,2002:float")


class ConfigLoader(yaml.SafeLoader):
    """
    SafeLoader that leaves unquoted numbers as the text the user wrote.

    Dashboard and panel IDs are identifiers, not numbers: ``012`` must not
    turn into 10 and ``2.0`` must not be reformatted.
    """


ConfigLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _NUMERIC_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def read_yaml_document(path) -> Dict[str, Any]:
    """Reads a YAML file whose top level must be a mapping."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            document = yaml.load(fh, Loader=ConfigLoader)
    except OSError as e:
        raise ConfigError(f"cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"malformed configuration file {path}: {e}") from e

    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise ConfigError(f"configuration file {path} must contain a mapping")
    return document
