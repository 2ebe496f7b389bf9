# graphbot/slackapp/views.py

"""
Main Views for the Slack Graph Bot.

This module handles the slash-command webhook. A request is verified, parsed,
checked against the dashboard registry, and then handed to a background task
that renders and uploads the graph. The view answers Slack straight away;
Slack expects an acknowledgement within three seconds, far less than a render
can take.

The entry point is:
- `slash_command`: Receives the trigger command (by default `/graph`).
"""

# Standard library imports
import logging
from typing import Optional

# Django imports
from django.apps import apps
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

# Local application imports
from . import dashboards
from .errors import InvalidTimeRangeError, NotFoundError
from .tasks import deliver_graph
from .timerange import parse_relative_offset
from .utils import SlashCommand, parse_slash_command, slack_verification_required

# --- Initialization & Constants ---
LOGGER = logging.getLogger(__name__)

TAKING_GRAPH_MESSAGE = "taking graph..."
INVALID_TIME_RANGE_MESSAGE = "time range is invalid"
NO_GRAPH_MESSAGE = "no graph"


# ==============================================================================
# 1. Main Slack Entry Point (Webhook Receiver)
# ==============================================================================

@csrf_exempt
@require_POST
@slack_verification_required
def slash_command(request: HttpRequest) -> HttpResponse:
    """
    Handles and routes incoming slash commands from Slack.

    Only the configured trigger command is acted on. Any other command is
    accepted with an empty 200 response and otherwise ignored.
    """
    try:
        command = parse_slash_command(request.body)
    except (UnicodeDecodeError, ValueError) as e:
        LOGGER.warning(f"Could not parse slash command payload: {e}")
        return HttpResponse(status=500)

    LOGGER.info(
        f"Slash command '{command.command} {command.text}' received from "
        f"{command.user_name or command.user_id} in {command.channel_id}"
    )

    trigger = apps.get_app_config("slackapp").bot_config.slack.command
    if command.command != trigger:
        LOGGER.info(f"Ignoring unhandled slash command: {command.command}")
        return HttpResponse(status=200)

    try:
        return _handle_graph_command(command)
    except Exception as e:
        LOGGER.exception(f"Unexpected error while handling '{command.text}': {e}")
        return HttpResponse(status=500)


# ==============================================================================
# 2. Command Handlers
# ==============================================================================

def _handle_graph_command(command: SlashCommand) -> HttpResponse:
    """
    Validates `<dashboard> [time range]` and queues the render.

    The time range is checked before the dashboard name, so a bad token wins
    over an unknown dashboard.
    """
    args = command.text.split()
    name = args[0] if args else ""

    from_offset: Optional[str] = None
    if len(args) >= 2:
        try:
            from_offset = parse_relative_offset(args[1])
        except InvalidTimeRangeError:
            return _respond_with_message(INVALID_TIME_RANGE_MESSAGE)

    try:
        dashboard = dashboards.resolve(name)
    except NotFoundError:
        return _respond_with_message(NO_GRAPH_MESSAGE)

    # Fire and forget: the result is never awaited or tracked.
    deliver_graph.delay(dashboard.name, command.channel_id, from_offset)
    return _respond_with_message(TAKING_GRAPH_MESSAGE)


# ==============================================================================
# 3. Helpers
# ==============================================================================

def _respond_with_message(message: str) -> JsonResponse:
    """The immediate reply Slack shows to the user who ran the command."""
    return JsonResponse({"text": message})
