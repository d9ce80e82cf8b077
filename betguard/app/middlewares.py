import logging
import uuid

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        logger.info(f"Request started: {request.method} {request.url.path} (ID: {request_id})")
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.info(f"Request finished: {request.method} {request.url.path} - {response.status_code} (ID: {request_id})")
        return response


def register_middlewares(app: FastAPI):
    """Register middlewares for the FastAPI app."""
    app.add_middleware(RequestIDMiddleware)
