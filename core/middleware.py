import logging
import time

logger = logging.getLogger(__name__)


class ApiRequestLogMiddleware:
    """Log method, path, status and duration of every ``/api/`` request."""
    PREFIX = '/api/'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        path = request.path or ''
        if not path.startswith(self.PREFIX):
            return self.get_response(request)
        started = time.monotonic()
        response = self.get_response(request)
        elapsed_ms = (time.monotonic() - started) * 1000
        if response.status_code >= 500:
            logger.warning('%s %s -> %s (%.1f ms)', request.method, path, response.status_code, elapsed_ms)
        else:
            logger.info('%s %s -> %s (%.1f ms)', request.method, path, response.status_code, elapsed_ms)
        return response
