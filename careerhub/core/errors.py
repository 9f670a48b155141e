"""Error taxonomy and FastAPI handlers.

Every handler renders the same contract:
``{"success": false, "error": <message>, "error_code": <code>, "request_id": <rid>}``
plus any structured ``details`` the error carries.
"""

import logging
import builtins
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from careerhub.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id
        self.details = details or {}


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class UnauthorizedError(AppError):
    code = "unauthorized"
    status_code = 401


class PermissionError(AppError, builtins.PermissionError):
    code = "forbidden"
    status_code = 403


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class InsufficientCreditsError(AppError):
    """Entitlement gate rejected the request; never retried automatically."""
    code = "insufficient_credits"
    status_code = 429

    def __init__(
        self,
        message: str,
        *,
        feature_key: Optional[str] = None,
        credits_required: int = 0,
        credits_available: int = 0,
        usage_count: Optional[int] = None,
        usage_limit: Optional[int] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            message,
            request_id=request_id,
            details={
                "feature_key": feature_key,
                "credits_required": credits_required,
                "credits_available": credits_available,
                "deficit": max(0, credits_required - credits_available),
                "usage_count": usage_count,
                "usage_limit": usage_limit,
            },
        )
        self.feature_key = feature_key
        self.credits_required = credits_required
        self.credits_available = credits_available
        self.usage_count = usage_count
        self.usage_limit = usage_limit

    @property
    def deficit(self) -> int:
        return max(0, self.credits_required - self.credits_available)


class ProviderError(AppError):
    """LLM provider call failed (after retries, or immediately if non-transient)."""
    code = "provider_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        provider_status: Optional[int] = None,
        provider_message: Optional[str] = None,
        transient: bool = False,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            message,
            request_id=request_id,
            details={"provider_status": provider_status},
        )
        self.provider_status = provider_status
        self.provider_message = provider_message
        self.transient = transient


class GenerationError(AppError):
    """Provider answered but the content failed structural validation."""
    code = "generation_error"
    status_code = 500


class MalformedResponseError(GenerationError):
    code = "malformed_response"


class IncompleteResponseError(GenerationError):
    code = "incomplete_response"

    def __init__(self, message: str, *, field: Optional[str] = None, request_id: Optional[str] = None):
        super().__init__(message, request_id=request_id, details={"field": field})
        self.field = field


class PersistenceError(AppError):
    """Commit failed; the credit ledger was rolled back."""
    code = "persistence_error"
    status_code = 500


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, request_id: str, details: Optional[Dict[str, Any]] = None) -> dict:
    payload = {
        "success": False,
        "error": message,
        "error_code": code,
        "request_id": request_id,
    }
    if details:
        payload["details"] = details
    return payload


def _json_error(status_code: int, payload: dict, rid: str) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    payload = _error_payload(exc.code, exc.message, rid, exc.details)
    logger = logging.getLogger("careerhub")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    return _json_error(exc.status_code, payload, rid)


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = {401: "unauthorized", 403: "forbidden", 404: "not_found"}.get(exc.status_code, "http_error")
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("careerhub")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    return _json_error(exc.status_code, payload, rid)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    rid = _extract_request_id(request)
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {location} {first.get('msg', '')}".strip()
    payload = _error_payload("validation_error", message, rid)
    logging.getLogger("careerhub").warning(
        "request.invalid", extra={"request_id": rid, "error_code": "validation_error", "status": 400}
    )
    return _json_error(400, payload, rid)


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger = logging.getLogger("careerhub")
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", rid)
    return _json_error(500, payload, rid)
