# graphbot/slackapp/tasks.py

"""
Asynchronous Background Tasks for the Slack App.

This module defines the Celery task that renders a dashboard panel and posts
the image to the channel the slash command came from. The web view only
enqueues it; the image arrives in Slack whenever the worker finishes.

Each command gets at most one delivery attempt: the task is acknowledged when
it is received and never retried. Failures are logged and go no further; by
the time the task runs, Slack has already received its acknowledgement.
"""

# Standard library imports
import logging
import time
from typing import Optional

# Third-party imports
from celery import shared_task
from django.apps import apps
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError, SlackClientError

# Local application imports
from . import dashboards
from .errors import NotFoundError, RenderError, UploadError
from .grafana import RenderOptions, RenderResult

LOGGER = logging.getLogger(__name__)


def graph_filename() -> str:
    return f"graph_{time.time_ns()}.png"


def upload_graph(client: WebClient, channel_id: str, graph: RenderResult) -> None:
    """
    Uploads a rendered graph to a channel, with the render URL as the comment.

    Raises:
        UploadError: if Slack rejects the upload or cannot be reached.
    """
    try:
        client.files_upload_v2(
            channel=channel_id,
            filename=graph_filename(),
            content=graph.image,
            initial_comment=graph.url,
        )
    except SlackApiError as e:
        raise UploadError(f"Slack rejected the upload to {channel_id}: {e.response['error']}") from e
    except (SlackClientError, OSError) as e:
        raise UploadError(f"uploading to {channel_id} failed: {e}") from e


@shared_task(ignore_result=True, acks_late=False, max_retries=0)
def deliver_graph(dashboard_name: str, channel_id: str, from_offset: Optional[str] = None) -> None:
    """
    Renders `dashboard_name` and uploads it to `channel_id`.

    Args:
        dashboard_name: Registered dashboard name, already checked by the view.
        channel_id: The Slack channel the command was issued in.
        from_offset: Grafana relative ``from`` value such as ``now-2h``.
    """
    app_config = apps.get_app_config("slackapp")

    try:
        dashboard = dashboards.resolve(dashboard_name)
        graph = app_config.render_client.fetch_solo_panel(
            dashboard, RenderOptions(from_offset=from_offset)
        )
    except (NotFoundError, RenderError) as e:
        LOGGER.error(f"Could not render '{dashboard_name}' for channel {channel_id}: {e}")
        return

    try:
        upload_graph(app_config.slack_client, channel_id, graph)
    except UploadError as e:
        LOGGER.error(f"Could not deliver '{dashboard_name}' to channel {channel_id}: {e}")
        return

    LOGGER.info(f"Delivered '{dashboard_name}' ({len(graph.image)} bytes) to channel {channel_id}")
