from .settings import *
import os
from dotenv import load_dotenv
load_dotenv(os.path.join(BASE_DIR, '..', '.env'))

DEBUG = False
SECRET_KEY = os.environ["SECRET_KEY"]
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(',')
CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(',')

# The agent layer must always present a token in production
MARKETPLACE = {
    **MARKETPLACE,
    "AGENT_API_TOKEN": os.environ["AGENT_API_TOKEN"],
}

# Events reach the chat transport through Redis
CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels_redis.core.RedisChannelLayer",
        "CONFIG": {
            "hosts": [os.getenv("REDIS_URL", f"redis://{REDIS_HOST}:{REDIS_PORT}/0")],
        },
    }
}
