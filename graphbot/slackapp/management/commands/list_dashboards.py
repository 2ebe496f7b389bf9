# graphbot/slackapp/management/commands/list_dashboards.py

from django.core.management.base import BaseCommand

from slackapp import dashboards


class Command(BaseCommand):
    help = "List the dashboards users can request with the slash command."

    def handle(self, *args, **options):
        registry = dashboards.current()
        if not registry:
            self.stdout.write("No dashboards configured.")
            return
        for name in sorted(registry):
            d = registry[name]
            self.stdout.write(
                f"{d.name}\tdashboard={d.dashboard_id}/{d.dashboard_slug}\torg={d.org_id}\tpanel={d.panel_id}"
            )
