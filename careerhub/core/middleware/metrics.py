import logging

from starlette.middleware.base import BaseHTTPMiddleware

from careerhub.core.metrics import http_requests_total, normalize_path

logger = logging.getLogger("careerhub")


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count HTTP requests by method, normalized path and status."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        _record_request_metric(request, response)
        return response


def _record_request_metric(request, response) -> None:
    try:
        http_requests_total.inc(labels={
            "method": request.method.upper(),
            "path": normalize_path(request.url.path),
            "status": str(getattr(response, "status_code", None) or 0),
        })
    except Exception as e:
        # A metrics failure must not fail the request
        logger.debug(f"metrics: failed to record request: {e}")
