"""Converts domain and request-validation errors into ``{"kind", "detail", ...}`` JSON."""

import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.api.schemas import ErrorResponse
from src.domain.errors import (
    DispatchError,
    DuplicateError,
    NotFoundError,
    OtpExpiredError,
    OtpInvalidError,
    PermissionDeniedError,
    StateConflictError,
    UnauthenticatedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[DispatchError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    StateConflictError: 409,
    OtpInvalidError: 400,
    OtpExpiredError: 400,
    DuplicateError: 409,
    PermissionDeniedError: 403,
    UnauthenticatedError: 401,
}

# OpenAPI documentation for the error body every router can return.
ERROR_RESPONSES = {
    code: {"model": ErrorResponse} for code in sorted(set(STATUS_CODES.values()))
}


def status_code_for(exc: DispatchError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400


async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
    code = status_code_for(exc)
    logger.info("%s %s -> %d %s: %s", request.method, request.url.path, code, exc.kind, exc.detail)
    return JSONResponse(status_code=code, content=exc.to_dict())


def _describe(error: dict) -> str:
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "header")]
    field = ".".join(loc)
    return f"{field}: {error.get('msg')}" if field else str(error.get("msg"))


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies and parameters surface as ``validation_error`` too."""
    errors = exc.errors()
    detail = "; ".join(_describe(e) for e in errors) or "Invalid request"
    logger.info("%s %s -> 422 validation_error: %s", request.method, request.url.path, detail)
    body = ValidationError(detail, errors=jsonable_encoder(errors)).to_dict()
    return JSONResponse(status_code=422, content=body)
