# graphbot/graphbot/celery.py

"""
Celery Configuration for the Graphbot Project.

This module defines the Celery application that runs the render-and-upload
delivery tasks. A worker started with ``celery -A graphbot worker`` loads the
Django settings, which also runs the slackapp start-up (configuration,
dashboard registry, Grafana credentials), so workers fail fast on the same
errors the web process does.
"""

import os
from celery import Celery

# It must come before the app instance is created.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'graphbot.settings')

app = Celery('graphbot')

# All Celery settings in settings.py are prefixed with 'CELERY_'.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Picks up slackapp/tasks.py.
app.autodiscover_tasks()
