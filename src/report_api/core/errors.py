"""Error types and the JSON error responses they turn into.

Every request-scoped failure ends up as a JSON body shaped like
``{"message": ..., "error": ..., "stack": ...}``. Failures that the gateway
recognises are raised as one of the `GatewayError` variants below and carry
their own status code and message. Anything else is unclassified and becomes
a 500, with the traceback included only outside production.
"""
import logging
import traceback
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, error: str, message: Optional[str] = None):
        super().__init__(error)
        self.error = error
        if message is not None:
            self.message = message


class MalformedBodyError(GatewayError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid JSON payload"


class PayloadTooLargeError(GatewayError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    message = "Request entity too large"


class UnsupportedMediaTypeError(GatewayError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    message = "Unsupported file type"


class DatabaseUnavailableError(RuntimeError):
    """Raised at startup when the database cannot be reached. Fatal to the process."""


def error_response(exc: Exception, include_stack: bool = False) -> JSONResponse:
    if isinstance(exc, GatewayError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.message, "error": exc.error},
        )

    content = {"message": "Internal server error", "error": str(exc)}
    if include_stack:
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.message} ({exc.error})")
    return error_response(exc)

