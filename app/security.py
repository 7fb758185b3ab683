"""
Security utilities for the FastAPI application.
Provides middlewares, validators, and helpers for hardening the server.
"""

import os
import re
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from fastapi import HTTPException

from configs.config import get_config

logger = logging.getLogger(__name__)

cfg = get_config()

# --------------- Input Validation Patterns ---------------

HEX_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")
TRANSCRIPT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{1,64}$")


# --------------- Middlewares ---------------


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject standard security headers on every response."""

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=()"
        )
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline'; "
            "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
            "font-src 'self' https://fonts.gstatic.com; "
            "img-src 'self' data:; "
            "connect-src 'self'"
        )
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = (
                "max-age=63072000; includeSubDomains; preload"
            )
        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a unique X-Request-ID to every request / response."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# --------------- Validators ---------------


def validate_hex_id(value: str, label: str = "ID") -> str:
    """Validate a locally generated id (job or transcription), or raise 400."""
    if not HEX_ID_PATTERN.match(value):
        logger.warning("Rejected invalid %s: %r", label, value)
        raise HTTPException(status_code=400, detail=f"Invalid {label} format")
    return value


def validate_transcript_id(transcript_id: str) -> str:
    """Validate a provider transcript id, or raise 400."""
    if not TRANSCRIPT_ID_PATTERN.match(transcript_id):
        logger.warning("Rejected invalid transcript_id: %r", transcript_id)
        raise HTTPException(
            status_code=400, detail="Invalid transcript ID format"
        )
    return transcript_id


def validate_file_extension(filename: str) -> str:
    """Validate uploaded file has an allowed extension, or raise 400."""
    if not filename:
        raise HTTPException(status_code=400, detail="No audio file provided")
    ext = os.path.splitext(filename)[1].lower()
    if ext not in cfg.ALLOWED_EXTENSIONS:
        logger.warning(
            "Rejected file with disallowed extension: %r", filename
        )
        raise HTTPException(
            status_code=400,
            detail=(
                f"File type '{ext}' not allowed. "
                f"Allowed: {', '.join(sorted(cfg.ALLOWED_EXTENSIONS))}"
            ),
        )
    return filename


# --------------- Error Helpers ---------------


def safe_error_response(
    exc: Exception, context: str = "operation", status_code: int = 500
):
    """
    Log the real exception but return a sanitized message to the client.
    In development mode, the real error is included for debugging.
    """
    logger.error("Error in %s: %s", context, exc, exc_info=True)
    if cfg.ENVIRONMENT == "development":
        detail = f"[DEV] {context}: {exc}"
    else:
        detail = (
            f"An internal error occurred during {context}. "
            "Please try again later."
        )
    raise HTTPException(status_code=status_code, detail=detail)
