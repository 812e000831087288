import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'app_backend.settings')

django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter  # noqa: E402

# Marketplace events are published to channel groups; delivery consumers
# belong to the chat transport and are mounted by that deployment.
application = ProtocolTypeRouter({
    "http": django_asgi_app,
})
