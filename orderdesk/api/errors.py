"""API errors rendered as the JSON envelope.

Routes raise ApiError with an HTTP status and a machine-readable code;
the handlers installed by install_error_handlers() turn it, and request
validation failures, into {"success": false, "error": ..., "code": ...}.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from orderdesk.api.schemas import Envelope

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        *,
        status: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.status = status
        self.headers = headers


def error_response(
    status_code: int,
    code: str,
    message: str,
    *,
    status: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = Envelope(success=False, status=status, error=message, code=code)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


async def _api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    return error_response(
        exc.status_code, exc.code, exc.message, status=exc.status, headers=exc.headers
    )


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
    logger.warning("Validation failed %s %s: %s", request.method, request.url.path, message)
    return error_response(400, "VALIDATION_ERROR", message)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, _validation_error_handler  # type: ignore[arg-type]
    )
