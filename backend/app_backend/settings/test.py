"""Settings used by the test suite (in-memory SQLite, in-memory channel layer)."""

from .settings import *  # noqa: F401,F403

DEBUG = False
SECRET_KEY = "test-secret-key"

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels.layers.InMemoryChannelLayer",
    }
}

MARKETPLACE = {
    **MARKETPLACE,
    "CASCADE_REJECT_ON_ACCEPT": False,
    "RATING_REQUIRES_COMPLETION": False,
    "MAX_NEGOTIATION_ROUNDS": None,
    "AGENT_API_TOKEN": "",
}

LOG_LEVEL = "WARNING"
for _logger in LOGGING["loggers"].values():
    _logger["level"] = LOG_LEVEL
