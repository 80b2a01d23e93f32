"""
Error taxonomy shared by services and routers.

Each error is an HTTPException so a service can raise it directly and the
framework maps it to the matching status code. Store-level failures that
escape a service are translated by the handlers registered in
``register_error_handlers``.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.storage import UploadError

log = structlog.get_logger()


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=400, detail=detail)


class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=401,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=403, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=404, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=409, detail=detail)


class UnclassifiedStoreError(HTTPException):
    """Store failure with no mapping; carries the driver's raw error code."""

    def __init__(self, code: str | None):
        super().__init__(status_code=500, detail=code or "Database error")


def store_error_code(exc: SQLAlchemyError) -> str | None:
    """Best-effort extraction of the driver error code (SQLSTATE / sqlite code)."""
    orig = getattr(exc, "orig", None)
    for attr in ("sqlstate", "pgcode", "sqlite_errorname"):
        value = getattr(orig, attr, None)
        if value:
            return str(value)
    return getattr(exc, "code", None)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "request"
        detail = f"{field}: {first.get('msg', 'invalid value')}"
        log.info("request.invalid", path=request.url.path, detail=detail)
        return JSONResponse(
            status_code=400,
            content={"detail": detail, "errors": jsonable_encoder(errors)},
        )

    @app.exception_handler(UploadError)
    async def _upload_error(request: Request, exc: UploadError):
        log.error("media.upload_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=502, content={"detail": "Image upload failed"})

    @app.exception_handler(IntegrityError)
    async def _integrity_error(request: Request, exc: IntegrityError):
        log.warning("store.conflict", path=request.url.path, code=store_error_code(exc))
        return JSONResponse(status_code=409, content={"detail": "Resource already exists"})

    @app.exception_handler(SQLAlchemyError)
    async def _store_error(request: Request, exc: SQLAlchemyError):
        err = UnclassifiedStoreError(store_error_code(exc))
        log.error("store.error", path=request.url.path, code=err.detail)
        return JSONResponse(status_code=err.status_code, content={"detail": err.detail})
