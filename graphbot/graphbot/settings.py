# graphbot/graphbot/settings.py
"""
Django settings for the graphbot project.

This file contains the core configuration for the Django application and its
Celery worker. Secrets and deployment-specific values are loaded from the
environment (optionally through a .env file); the dashboards and the Slack and
Grafana connection details live in the YAML document named by
GRAPHBOT_CONFIG_FILE.
"""

from pathlib import Path
import os
from dotenv import load_dotenv

load_dotenv()

# ==============================================================================
# CORE SETTINGS
# ==============================================================================

# Build paths inside the project like this: BASE_DIR / 'subdir'
BASE_DIR = Path(__file__).resolve().parent.parent
SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'graphbot-insecure-development-key')
# The DEBUG flag is loaded as a boolean from an environment variable.
DEBUG = os.getenv('DJANGO_DEBUG', 'False') == 'True'

# The production domain should be loaded from an environment variable.
ALLOWED_HOSTS = [
    host for host in (
        "127.0.0.1",
        "localhost",
        os.getenv('PRODUCTION_HOST'),  # e.g., your ngrok URL or final domain
    ) if host
]


# ==============================================================================
# APPLICATION-SPECIFIC SETTINGS (Loaded from Environment Variables)
# ==============================================================================

# The YAML document with the Slack, Grafana and dashboard configuration.
# CONFIG_FILE is accepted for deployments that predate the prefixed name.
GRAPHBOT_CONFIG_FILE = (
    os.getenv("GRAPHBOT_CONFIG_FILE")
    or os.getenv("CONFIG_FILE")
    or str(BASE_DIR / "config.yaml")
)


# ==============================================================================
# DJANGO-SPECIFIC CONFIGURATION
# ==============================================================================

# Application definition. The bot keeps no database state, so none of the
# contrib apps are needed.
INSTALLED_APPS = [
    'slackapp.apps.SlackappConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'graphbot.urls'

WSGI_APPLICATION = 'graphbot.wsgi.application'

DATABASES = {}


# Internationalization
# https://docs.djangoproject.com/en/4.2/topics/i18n/
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = False
USE_TZ = True


# Logging Configuration
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'file': {
            'level': 'INFO',
            'class': 'logging.FileHandler',
            'filename': os.getenv('GRAPHBOT_LOG_FILE', 'graphbot.log'),
            'formatter': 'verbose',
        },
        'console': {
            'level': 'DEBUG',
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'slackapp': {
            'handlers': ['file', 'console'],
            'level': os.getenv('GRAPHBOT_LOG_LEVEL', 'INFO'),
            'propagate': True,
        },
    },
}

# ==============================================================================
# CELERY CONFIGURATION
# ==============================================================================
# URL for the Redis message broker.
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
# Delivery tasks return nothing, so no result backend is configured.
CELERY_TASK_IGNORE_RESULT = True
# Use JSON as the content type for tasks.
CELERY_ACCEPT_CONTENT = ['json']
# Use JSON as the task serializer.
CELERY_TASK_SERIALIZER = 'json'
# Acknowledge on receipt: a delivery is attempted at most once per command.
CELERY_TASK_ACKS_LATE = False
