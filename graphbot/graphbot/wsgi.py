# graphbot/graphbot/wsgi.py

"""WSGI config for the graphbot project, used by `serve` and by gunicorn."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'graphbot.settings')

application = get_wsgi_application()
