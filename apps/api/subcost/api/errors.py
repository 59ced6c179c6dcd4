from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from subcost.business.subscription.errors import (
    AggregationOverflowError,
    FormatError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from subcost.business.subscription.schemas import ErrorResponse


logger = logging.getLogger("subcost.errors")


def _error_response(status_code: int, code: str, message: str, fields: dict[str, str] | None = None) -> JSONResponse:
    body = ErrorResponse(code=code, message=message, fields=fields or None)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body, exclude_none=True))


def _location_name(loc: tuple[object, ...] | list[object]) -> str:
    parts = [str(part) for part in loc if part not in {"body", "query", "path"}]
    return ".".join(parts) or "body"


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = {_location_name(error.get("loc", ())): str(error.get("msg", "invalid")) for error in exc.errors()}
    logger.warning("request.invalid_payload", extra={"error": str(fields)})
    return _error_response(status.HTTP_400_BAD_REQUEST, "invalid_payload", "invalid request", fields)


async def handle_format_error(request: Request, exc: FormatError) -> JSONResponse:
    return _error_response(status.HTTP_400_BAD_REQUEST, "invalid_field", str(exc), {"value": exc.reason})


async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return _error_response(status.HTTP_400_BAD_REQUEST, exc.code, exc.message, exc.fields)


async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(status.HTTP_404_NOT_FOUND, "not_found", "not found")


async def handle_overflow(request: Request, exc: AggregationOverflowError) -> JSONResponse:
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "sum_overflow", "total exceeds the supported range")


async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("request.store_failed", exc_info=exc, extra={"error": str(exc.__cause__ or exc)})
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "internal error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, handle_request_validation)  # type: ignore[arg-type]
    app.add_exception_handler(FormatError, handle_format_error)  # type: ignore[arg-type]
    app.add_exception_handler(ValidationError, handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(NotFoundError, handle_not_found)  # type: ignore[arg-type]
    app.add_exception_handler(AggregationOverflowError, handle_overflow)  # type: ignore[arg-type]
    app.add_exception_handler(StoreError, handle_store_error)  # type: ignore[arg-type]
