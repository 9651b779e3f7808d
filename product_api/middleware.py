import logging

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from product_api.schemas.product import ErrorEnvelope
from product_api.utils.logging import set_correlation_id

logger = logging.getLogger(__name__)


def internal_error_response() -> JSONResponse:
    """Opaque 500 envelope; details of the failure only go to the log."""
    envelope = ErrorEnvelope(message="Server error", error="INTERNAL_ERROR")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=envelope.model_dump(exclude_none=True)
    )


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with the caller's X-Correlation-ID, or a fresh one, and echo it back."""

    CORRELATION_ID_HEADER = "X-Correlation-ID"

    async def dispatch(self, request: Request, call_next):
        correlation_id = set_correlation_id(request.headers.get(self.CORRELATION_ID_HEADER) or None)

        response = await call_next(request)
        response.headers[self.CORRELATION_ID_HEADER] = correlation_id

        return response


class UnhandledErrorMiddleware(BaseHTTPMiddleware):
    """
    Turn exceptions no handler claimed into the 500 envelope.

    Sits inside CORS and correlation handling so those headers still apply,
    and keeps the failure from reaching the ASGI server.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
            return internal_error_response()
