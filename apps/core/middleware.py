import logging
import time

from django.utils import timezone
from django.utils.deprecation import MiddlewareMixin

from .observability import RequestEvent, build_sink

logger = logging.getLogger(__name__)


class RequestTimingMiddleware(MiddlewareMixin):
    """
    Times every request and reports it to the observability sink.

    The sink is built once when Django instantiates the middleware and kept
    on the instance; tests can pass their own sink.
    """

    def __init__(self, get_response=None, sink=None):
        super().__init__(get_response)
        self.sink = sink or build_sink()

    def process_request(self, request):
        request._timing_started = time.perf_counter()

    def process_response(self, request, response):
        started = getattr(request, '_timing_started', None)
        if started is None:
            return response

        duration_ms = (time.perf_counter() - started) * 1000
        auth = getattr(request, 'auth', None)
        user_id = getattr(getattr(auth, 'user', None), 'id', None)

        self.sink.record(RequestEvent(
            method=request.method,
            path=request.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            remote_addr=request.META.get('REMOTE_ADDR'),
            user_id=str(user_id) if user_id else None,
            occurred_at=timezone.now(),
        ))
        return response
