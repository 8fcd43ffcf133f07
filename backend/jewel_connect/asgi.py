"""
ASGI config for jewel_connect project.

WebSocket routes are mounted by the messaging subsystem; this project only
publishes group purchase events onto the channel layer.
"""

import os
import logging

# CRITICAL: Set Django settings module BEFORE any Django imports
os.environ.setdefault('DJANGO_SETTINGS_MODULE',
                      'jewel_connect.settings.production')

# isort: off
from django.core.asgi import get_asgi_application  # noqa: E402
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter  # noqa: E402
# isort: on

logger = logging.getLogger(__name__)


class HealthCheckMiddleware:
    """
    ASGI middleware to handle health checks and lifespan protocol.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        # Handle lifespan protocol (ProtocolTypeRouter doesn't support it)
        if scope["type"] == "lifespan":
            while True:
                message = await receive()
                if message["type"] == "lifespan.startup":
                    await send({"type": "lifespan.startup.complete"})
                elif message["type"] == "lifespan.shutdown":
                    await send({"type": "lifespan.shutdown.complete"})
                    return

        if scope["type"] == "http" and scope.get("path") == "/health":
            await send({
                "type": "http.response.start",
                "status": 200,
                "headers": [[b"content-type", b"text/plain"]],
            })
            await send({
                "type": "http.response.body",
                "body": b"OK",
            })
            return

        await self.app(scope, receive, send)


inner_app = ProtocolTypeRouter({
    "http": django_asgi_app,
})

application = HealthCheckMiddleware(inner_app)
