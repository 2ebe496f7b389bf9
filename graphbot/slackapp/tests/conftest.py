"""Shared fixtures for the slackapp tests."""

import time
import urllib.parse
from typing import Dict, Optional

import pytest
from django.apps import apps
from slack_sdk.signature import SignatureVerifier

from slackapp import dashboards

COMMAND_URL = "/slack/commands/"


@pytest.fixture
def app_config():
    return apps.get_app_config("slackapp")


@pytest.fixture
def signing_secret(app_config) -> str:
    return app_config.bot_config.slack.secret


@pytest.fixture
def restore_registry():
    """Puts the configured dashboards back after a test swaps the registry."""
    snapshot = dashboards.current()
    yield snapshot
    dashboards.install(snapshot.values())


def encode_command(text: str, command: str = "/graph", channel_id: str = "C0123456") -> str:
    return urllib.parse.urlencode({
        "token": "deprecated-verification-token",
        "team_id": "T0001",
        "channel_id": channel_id,
        "channel_name": "ops",
        "user_id": "U2147483697",
        "user_name": "alex",
        "command": command,
        "text": text,
        "response_url": "https://hooks.slack.com/commands/1234/5678",
        "trigger_id": "13345224609.738474920.8088930838d88f008e0",
    })


def signing_headers(secret: str, body: str, timestamp: Optional[int] = None) -> Dict[str, str]:
    timestamp = str(int(time.time()) if timestamp is None else timestamp)
    signature = SignatureVerifier(secret).generate_signature(timestamp=timestamp, body=body)
    return {
        "HTTP_X_SLACK_REQUEST_TIMESTAMP": timestamp,
        "HTTP_X_SLACK_SIGNATURE": signature,
    }


@pytest.fixture
def post_command(client, signing_secret):
    """Posts a correctly signed slash command and returns the response."""

    def _post(text: str, command: str = "/graph", channel_id: str = "C0123456"):
        body = encode_command(text, command=command, channel_id=channel_id)
        return client.post(
            COMMAND_URL,
            data=body,
            content_type="application/x-www-form-urlencoded",
            **signing_headers(signing_secret, body),
        )

    return _post
