# graphbot/slackapp/urls.py

"""
URL Configuration for the Slack App Integration.

Slack posts every slash-command invocation to the URL configured for the
command in the Slack app settings.
"""

from django.urls import path
from . import views

app_name = 'slackapp'

urlpatterns = [
    # When a user types `/graph cpu-usage 2h`, Slack sends a signed POST here.
    path("commands/", views.slash_command, name="slash_command"),
]
