"""
Global exception handlers for FastAPI.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

import structlog

from taletype.core.exceptions import (
    TaleTypeError,
    ConfigurationError,
    LLMTimeoutError,
    LLMRateLimitError,
    GameNotStartedError,
    GameOverError,
    InputRejectedError,
)

log = structlog.get_logger(__name__)


def setup_exception_handlers(app: FastAPI):
    """Register custom exception handlers with the FastAPI application.

    Sets up handlers for all TaleTypeError subclasses with appropriate
    HTTP status codes, plus handlers for configuration errors and generic exceptions.
    """

    @app.exception_handler(TaleTypeError)
    async def taletype_error_handler(
        request: Request,
        exc: TaleTypeError,
    ) -> JSONResponse:
        """Handle TaleTypeError exceptions with appropriate HTTP status codes.

        Game-phase conflicts map to 409, rejected input to 400, LLM timeouts
        to 504 and rate limits to 429.
        """
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

        if isinstance(exc, (GameNotStartedError, GameOverError)):
            status_code = status.HTTP_409_CONFLICT
        elif isinstance(exc, InputRejectedError):
            status_code = status.HTTP_400_BAD_REQUEST
        elif isinstance(exc, LLMTimeoutError):
            status_code = status.HTTP_504_GATEWAY_TIMEOUT
        elif isinstance(exc, LLMRateLimitError):
            status_code = status.HTTP_429_TOO_MANY_REQUESTS

        log_ctx.warning(
            "request_error",
            message=exc.message,
            status_code=status_code,
        )

        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "type": type(exc).__name__,
                    "message": exc.message,
                }
            },
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request,
        exc: ConfigurationError,
    ) -> JSONResponse:
        """Handle configuration errors with HTTP 500 status."""
        log.error(
            "configuration_error",
            path=request.url.path,
            message=exc.message,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "type": "ConfigurationError",
                    "message": "Server configuration error",
                }
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle all unhandled exceptions with HTTP 500 status.

        Catches any exception not handled by specific handlers, logs the error
        with full context, and returns a generic 500 Internal Server Error response.
        """
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        log_ctx.error(
            "unhandled_exception",
            message=str(exc),
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "type": "InternalServerError",
                    "message": "An unexpected error occurred",
                }
            },
        )
