"""
Global Error Handler
Turns unexpected exceptions into a uniform JSON 500 response
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Last line of defense. Domain errors are mapped to HTTP status codes in
    the routes; anything reaching this point is a bug and is logged with its
    traceback (and forwarded to Sentry when configured).
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            request_id = getattr(request.state, "request_id", "-")
            logger.exception(f"❌ Unhandled error on {request.method} {request.url.path} [{request_id}]: {e}")
            return JSONResponse(status_code=500, content=ErrorResponse(error="internal error").model_dump())
