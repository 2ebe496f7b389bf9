# graphbot/graphbot/urls.py

"""
Root URL Configuration for the Graphbot Project.

The defined patterns are:
- `/slack/`: Delegates the Slack webhook endpoints to the `slackapp`.
- `/slash`: The path older Slack app configurations point the command at.
"""

from django.urls import include, path

from slackapp import views

urlpatterns = [
    # For example, a request to `/slack/commands/` is routed to `slackapp.urls`.
    path('slack/', include('slackapp.urls')),
    path('slash', views.slash_command, name='slash'),
]
