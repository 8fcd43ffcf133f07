"""
Unit tests for the ASGI health check wrapper.
"""
from asgiref.sync import async_to_sync

from jewel_connect.asgi import HealthCheckMiddleware


def call_app(app, scope, incoming=()):
    sent = []
    queue = list(incoming)

    async def receive():
        return queue.pop(0)

    async def send(message):
        sent.append(message)

    async_to_sync(app)(scope, receive, send)
    return sent


class TestHealthCheckMiddleware:

    def test_health_path_answers_directly(self):
        async def inner(scope, receive, send):
            raise AssertionError('inner app should not be called')

        sent = call_app(HealthCheckMiddleware(inner), {'type': 'http', 'path': '/health'})

        assert sent[0]['status'] == 200
        assert sent[1]['body'] == b'OK'

    def test_lifespan_is_acknowledged(self):
        async def inner(scope, receive, send):
            raise AssertionError('inner app should not be called')

        sent = call_app(
            HealthCheckMiddleware(inner),
            {'type': 'lifespan'},
            incoming=[{'type': 'lifespan.startup'}, {'type': 'lifespan.shutdown'}]
        )

        assert [m['type'] for m in sent] == [
            'lifespan.startup.complete', 'lifespan.shutdown.complete'
        ]

    def test_other_requests_pass_through(self):
        calls = []

        async def inner(scope, receive, send):
            calls.append(scope['path'])

        call_app(HealthCheckMiddleware(inner), {'type': 'http', 'path': '/api/v1/'})

        assert calls == ['/api/v1/']
