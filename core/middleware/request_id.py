import logging
import re
import uuid
from threading import local

from django.utils.deprecation import MiddlewareMixin

_thread_locals = local()

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9\-_.]{8,64}$")


class RequestIDMiddleware(MiddlewareMixin):
    """
    Tags every request with an id, reusing a well-formed inbound ``X-Request-ID``
    (for example from a load balancer) and echoing it on the response so client
    retries and server logs can be correlated.
    """

    def process_request(self, request):
        inbound = request.headers.get(REQUEST_ID_HEADER, "")
        request_id = inbound if _VALID_REQUEST_ID.match(inbound) else uuid.uuid4().hex
        request.request_id = request_id
        _thread_locals.request_id = request_id
        return None

    def process_response(self, request, response):
        if hasattr(request, "request_id"):
            response[REQUEST_ID_HEADER] = request.request_id
        _clear()
        return response

    def process_exception(self, request, exception):
        _clear()
        return None


def _clear():
    if hasattr(_thread_locals, "request_id"):
        delattr(_thread_locals, "request_id")


def get_request_id():
    return getattr(_thread_locals, "request_id", None)


class RequestIDFilter(logging.Filter):
    """Logging filter that adds ``request_id`` to every record."""

    def filter(self, record):
        record.request_id = get_request_id() or "no-request-id"
        return True
