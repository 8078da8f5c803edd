from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.routing import APIRoute


class ApiError(Exception):
    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None, *, headers: dict[str, str] | None = None) -> None:
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class BadRequest(ApiError):
    status_code = 400
    default_message = "Bad Request"


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    default_message = "File not found"


class PayloadTooLarge(ApiError):
    status_code = 413
    default_message = "File too large"


class InternalError(ApiError):
    status_code = 500
    default_message = "Internal Server Error"


async def api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        field = ".".join(str(part) for part in errors[0].get("loc", ()) if part not in ("body", "query", "path"))
        message = f"Invalid {field}" if field else "Invalid request"
    else:
        message = "Invalid request"
    return await api_error_handler(request, BadRequest(message))


class PlainTextErrorRoute(APIRoute):
    """
    Route class for file-serving endpoints.

    Errors raised by the endpoint or its dependencies are rendered as plain text
    instead of the JSON envelope used by the rest of the API.
    """

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_route_handler = super().get_route_handler()

        async def plain_text_route_handler(request: Request) -> Response:
            try:
                return await original_route_handler(request)
            except ApiError as exc:
                return PlainTextResponse(exc.message, status_code=exc.status_code, headers=exc.headers)

        return plain_text_route_handler
