# graphbot/slackapp/management/commands/serve.py

"""
Runs the slash-command endpoint on the listen address from the configuration.

    python manage.py serve            # uses slack.addr, e.g. ":8080"
    python manage.py serve 0.0.0.0:9000

Each request is handled on its own thread. For production deployments behind
a process manager, gunicorn with `graphbot.wsgi` works the same way.
"""

import logging
from typing import Tuple

from django.apps import apps
from django.core.management.base import BaseCommand, CommandError
from django.core.servers.basehttp import get_internal_wsgi_application, run

LOGGER = logging.getLogger(__name__)


def split_addr(addr: str) -> Tuple[str, int]:
    """Splits ``host:port`` (host optional) into its parts."""
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise CommandError(f"listen address must look like 'host:port' or ':port', got {addr!r}")
    return host.strip("[]") or "0.0.0.0", int(port)


class Command(BaseCommand):
    help = "Serve the Slack slash-command endpoint on the configured address."

    def add_arguments(self, parser):
        parser.add_argument("addrport", nargs="?", help="Overrides slack.addr from the configuration.")

    def handle(self, *args, **options):
        addr = options["addrport"] or apps.get_app_config("slackapp").bot_config.slack.addr
        host, port = split_addr(addr)
        LOGGER.info(f"Listening for slash commands on {host}:{port}")
        try:
            run(host, port, get_internal_wsgi_application(), ipv6=":" in host, threading=True)
        except OSError as e:
            raise CommandError(f"could not listen on {addr}: {e}") from e
