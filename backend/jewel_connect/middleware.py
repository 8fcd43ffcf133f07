"""
Request logging for the API.
"""
import logging
import time

from django.conf import settings

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware:
    """
    Logs each API request with the caller and the outcome.
    Write conflicts (409) and requests slower than
    REQUEST_LOGGING_SLOW_SECONDS are logged as warnings.
    Enabled with REQUEST_LOGGING_ENABLED=true.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.slow_seconds = getattr(settings, 'REQUEST_LOGGING_SLOW_SECONDS', 1.0)

    def __call__(self, request):
        if not request.path.startswith('/api/'):
            return self.get_response(request)

        start_time = time.monotonic()
        try:
            response = self.get_response(request)
        except Exception as e:
            logger.error(
                f"{request.method} {request.path} failed after "
                f"{time.monotonic() - start_time:.3f}s: {e}"
            )
            raise

        duration = time.monotonic() - start_time
        user = getattr(request, 'user', None)
        user_id = user.id if user is not None and user.is_authenticated else None
        message = (
            f"{request.method} {request.path} -> {response.status_code} "
            f"user={user_id} {duration:.3f}s"
        )

        if response.status_code == 409 or duration >= self.slow_seconds:
            logger.warning(message)
        else:
            logger.info(message)
        return response
