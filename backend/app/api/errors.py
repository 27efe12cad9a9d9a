"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Type

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.domain.common import errors
from app.obs import logging as obs_logging

_LOG = logging.getLogger(__name__)

_STATUS_BY_ERROR: Dict[Type[errors.DomainError], int] = {
    errors.NotFound: status.HTTP_404_NOT_FOUND,
    errors.Unauthorized: status.HTTP_403_FORBIDDEN,
    errors.InvalidState: status.HTTP_409_CONFLICT,
    errors.Conflict: status.HTTP_409_CONFLICT,
    errors.ValidationFailed: status.HTTP_400_BAD_REQUEST,
    errors.RateLimited: status.HTTP_429_TOO_MANY_REQUESTS,
}


def status_for(exc: errors.DomainError) -> int:
    """Resolve the HTTP status through the exception's MRO."""
    for klass in type(exc).__mro__:
        code = _STATUS_BY_ERROR.get(klass)
        if code is not None:
            return code
    return status.HTTP_400_BAD_REQUEST


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or obs_logging.current_request_id()


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(errors.DomainError)
    async def domain_exc_handler(request: Request, exc: errors.DomainError):  # type: ignore[override]
        code = status_for(exc)
        payload = {"detail": exc.reason, "request_id": _request_id(request)}
        if isinstance(exc, errors.NotEligible) and exc.missing:
            payload["missing"] = list(exc.missing)
        _LOG.info("domain error", extra={"reason": exc.reason, "status": code, "path": request.url.path})
        return JSONResponse(status_code=code, content=payload)

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        payload = {"detail": exc.detail, "request_id": _request_id(request)}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        payload = {"detail": "validation_error", "errors": jsonable_encoder(exc.errors()), "request_id": _request_id(request)}
        return JSONResponse(status_code=422, content=payload)
