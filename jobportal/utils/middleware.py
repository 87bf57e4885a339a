"""Middleware for request handling and error processing."""

import logging
import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .errors import PortalError, ValidationError, convert_exception
from .logging_config import request_id_var

# Configure logger
logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _error_response(error: PortalError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def _request_context(request: Request) -> dict:
    return {"path": request.url.path, "request_id": getattr(request.state, "request_id", request_id_var.get())}


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    """Render application errors raised by route handlers."""
    # Client errors are expected traffic
    error_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    exc.log(error_level, **_request_context(request))
    return _error_response(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI body/query validation failures in the application error format."""
    error = ValidationError("Invalid request", details={"errors": jsonable_errors(exc)})
    error.log(logging.WARNING, **_request_context(request))
    return _error_response(error)


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for global error handling."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and handle any errors.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            The response
        """
        try:
            return await call_next(request)
        except Exception as exc:
            error = convert_exception(exc)
            error.log(logging.ERROR, **_request_context(request))
            return _error_response(error)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging request details.

    Each request gets an id from the X-Request-ID header, or a generated one.
    The id is echoed on the response and stamped on records logged while serving it.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log request details and timing.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            The response
        """
        start_time = time.time()

        request_id = request.headers.get(REQUEST_ID_HEADER, "")[:64] or uuid.uuid4().hex
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        path = request.url.path
        method = request.method
        client = request.client.host if request.client else "unknown"

        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id

        process_time = time.time() - start_time

        log_dict = {
            "request_id": request_id,
            "path": path,
            "method": method,
            "client": client,
            "status_code": response.status_code,
            "process_time_ms": round(process_time * 1000, 2),
        }

        if response.status_code >= 500:
            logger.error(f"Request failed: {method} {path}", extra=log_dict)
        elif response.status_code >= 400:
            logger.warning(f"Request error: {method} {path}", extra=log_dict)
        else:
            logger.info(f"Request processed: {method} {path}", extra=log_dict)

        return response


def setup_middleware(app: FastAPI, request_logging: bool = True) -> None:
    """Set up error handlers and middleware for the application.

    Args:
        app: The FastAPI application
        request_logging: Whether to log every request
    """
    app.add_exception_handler(PortalError, portal_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]

    app.add_middleware(ErrorHandlingMiddleware)

    if request_logging:
        app.add_middleware(RequestLoggingMiddleware)
