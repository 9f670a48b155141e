from starlette.middleware.base import BaseHTTPMiddleware

from careerhub.core.logging import get_request_id
from careerhub.core.metrics import normalize_path
from careerhub.core.tracing import annotate, start_span


class TracingMiddleware(BaseHTTPMiddleware):
    """One http.request span per request; generation spans nest inside it."""

    async def dispatch(self, request, call_next):
        attributes = {
            "http.method": request.method,
            "http.route": normalize_path(request.url.path),
            "request_id": getattr(request.state, "request_id", None) or get_request_id(),
        }
        with start_span("http.request", attributes) as span:
            response = await call_next(request)
            annotate(span, {"http.status_code": response.status_code})
            return response
