# graphbot/graphbot/test_settings.py
"""Settings used by the test suite."""

from .settings import *  # noqa: F401,F403
from .settings import BASE_DIR

GRAPHBOT_CONFIG_FILE = str(BASE_DIR / "slackapp" / "tests" / "fixtures" / "config.yaml")

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {
            'level': 'DEBUG',
            'class': 'logging.StreamHandler',
        },
    },
    'loggers': {
        'slackapp': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': True,
        },
    },
}

# Tasks are never sent to a broker in tests.
CELERY_TASK_ALWAYS_EAGER = True
CELERY_BROKER_URL = 'memory://'
