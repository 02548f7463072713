"""
Request size limiting middleware for FastAPI.
Rejects record sets too large to reconcile in one request.
"""
from typing import Any, Optional, Set
import json
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from assetcost.core.config import config

logger = logging.getLogger(__name__)


# Endpoints that accept record sets
PROTECTED_ENDPOINTS: Set[str] = {
    "/api/assets/graph",
    "/api/cost/estimate",
}


def _too_large(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content={"status": "error", "error": "request_too_large", "message": message},
    )


class RequestSizeLimiterMiddleware(BaseHTTPMiddleware):
    """
    Applies a body size limit and a record count limit to the record endpoints.
    Other routes pass through untouched.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_body_bytes: Optional[int] = None,
        max_records: Optional[int] = None
    ):
        super().__init__(app)
        self.max_body_bytes = max_body_bytes or config.MAX_REQUEST_BODY_BYTES
        self.max_records = max_records or config.MAX_RECORDS_PER_REQUEST

    async def dispatch(self, request: Request, call_next):
        """
        Check the request against the limits before handing it on.

        Args:
            request: Incoming request
            call_next: Next middleware or route handler

        Returns:
            413 response if a limit is exceeded, else the downstream response
        """
        path = request.url.path
        if path not in PROTECTED_ENDPOINTS:
            return await call_next(request)

        content_length = request.headers.get("Content-Length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_body_bytes:
            logger.info(f"Request body for {path} declares {content_length} bytes (limit: {self.max_body_bytes})")
            return _too_large(f"Request body exceeds {self.max_body_bytes} bytes.")

        body_bytes = await request.body()
        if len(body_bytes) > self.max_body_bytes:
            logger.info(f"Request body for {path} is {len(body_bytes)} bytes (limit: {self.max_body_bytes})")
            return _too_large(f"Request body exceeds {self.max_body_bytes} bytes.")

        if body_bytes:
            try:
                body_json = json.loads(body_bytes.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                # Not JSON; FastAPI reports it as a validation error
                body_json = None
            error = self._validate_payload(body_json)
            if error:
                logger.info(f"Payload validation failed for {path}: {error}")
                return _too_large(error)

        return await call_next(request)

    def _validate_payload(self, body_json: Any) -> Optional[str]:
        """
        Check the number of records in a request body.

        Returns:
            Error message if the body has too many records, None otherwise
        """
        if not isinstance(body_json, dict):
            return None
        records = body_json.get("records")
        if isinstance(records, list) and len(records) > self.max_records:
            return f"Too many records: {len(records)} (limit: {self.max_records})"
        return None
