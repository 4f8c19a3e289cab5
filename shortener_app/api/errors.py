"""
Exception handlers: every error leaves the API as {"error", "message"}.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shortener_app.exceptions import URLServiceError

logger = logging.getLogger(__name__)


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


async def url_service_error_handler(request: Request, exc: URLServiceError):
    logger.warning(
        "%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message
    )
    return error_response(exc.status_code, exc.error, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if any(err.get("loc", ())[-1:] == ("url",) and err.get("type") == "missing" for err in errors):
        message = "URL is required"
    else:
        message = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in errors
        )
    logger.warning("Validation error on %s %s: %s", request.method, request.url.path, message)
    return error_response(status.HTTP_400_BAD_REQUEST, "Bad Request", message)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        logger.warning("404 - Route not found: %s %s", request.method, request.url.path)
        return error_response(
            exc.status_code, "Not Found", "The requested resource was not found"
        )
    return error_response(exc.status_code, "Error", str(exc.detail))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "Something went wrong on the server",
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(URLServiceError, url_service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
