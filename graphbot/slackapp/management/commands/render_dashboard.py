# graphbot/slackapp/management/commands/render_dashboard.py

"""
Renders one configured dashboard to a local PNG file.

Goes through the same registry lookup, time-range parsing and render client
as the slash command, which makes it handy for checking Grafana credentials
from the server without involving Slack:

    python manage.py render_dashboard cpu-usage --range 2h -o cpu.png
"""

from django.apps import apps
from django.core.management.base import BaseCommand, CommandError

from slackapp import dashboards
from slackapp.errors import InvalidTimeRangeError, NotFoundError, RenderError
from slackapp.grafana import RenderOptions
from slackapp.timerange import parse_relative_offset


class Command(BaseCommand):
    help = "Render a configured dashboard panel to a PNG file."

    def add_arguments(self, parser):
        parser.add_argument("name", help="Dashboard name as used in the slash command.")
        parser.add_argument("--range", dest="time_range", help="Relative window such as 2h or 7d.")
        parser.add_argument("--org-id", help="Render under a different org.")
        parser.add_argument("--panel-id", help="Render a different panel of the same dashboard.")
        parser.add_argument("-o", "--output", help="Output file (default: <name>.png).")

    def handle(self, *args, **options):
        try:
            dashboard = dashboards.resolve(options["name"])
            from_offset = parse_relative_offset(options["time_range"]) if options["time_range"] else None
        except (NotFoundError, InvalidTimeRangeError) as e:
            raise CommandError(str(e)) from e

        render_options = RenderOptions(
            from_offset=from_offset,
            org_id_override=options["org_id"],
            panel_id_override=options["panel_id"],
        )
        try:
            graph = apps.get_app_config("slackapp").render_client.fetch_solo_panel(dashboard, render_options)
        except RenderError as e:
            raise CommandError(str(e)) from e

        output = options["output"] or f"{dashboard.name}.png"
        with open(output, "wb") as fh:
            fh.write(graph.image)
        self.stdout.write(self.style.SUCCESS(f"Wrote {len(graph.image)} bytes to {output} ({graph.url})"))
