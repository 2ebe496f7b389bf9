# graphbot/slackapp/apps.py

"""
App configuration for the Slack graph bot.

`ready()` runs once per process, in the web server and in every Celery worker
alike. It loads the configuration document, installs the dashboard registry
and builds the Grafana and Slack clients shared by all requests and tasks.
Any failure here is fatal: the process refuses to start rather than serve
with a partial registry or unusable credentials.
"""

import logging

from django.apps import AppConfig
from django.conf import settings
from slack_sdk import WebClient

LOGGER = logging.getLogger(__name__)


class SlackappConfig(AppConfig):
    name = "slackapp"
    verbose_name = "Slack Graph Bot"

    bot_config = None
    render_client = None
    slack_client = None

    def ready(self):
        from . import dashboards
        from .config import load_config
        from .grafana import build_client

        # Nothing is installed until configuration and credentials have loaded.
        bot_config = load_config(settings.GRAPHBOT_CONFIG_FILE)
        render_client = build_client(bot_config.grafana)

        dashboards.install(bot_config.dashboards)
        self.bot_config = bot_config
        self.render_client = render_client
        self.slack_client = WebClient(token=bot_config.slack.token)
        LOGGER.info(f"Slack graph bot ready; trigger command is {self.bot_config.slack.command}")
