"""
Request Logging Middleware

Logs every API request with HTTP method, path, status code and duration.
"""

import logging
import time

from fastapi import Request

# Dedicated request logger
logger = logging.getLogger("requests")


async def request_log_middleware(request: Request, call_next):
    """
    Request logging middleware

    Logs each request with:
    - HTTP method (GET, POST, etc.)
    - Request path
    - Response status code
    - Duration in milliseconds
    """
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception:
        duration_ms = (time.perf_counter() - started) * 1000
        logger.error(
            f"API Request | Method: {request.method} | Path: {request.url.path} | "
            f"Status: 500 | Duration: {duration_ms:.1f}ms"
        )
        raise

    duration_ms = (time.perf_counter() - started) * 1000
    logger.info(
        f"API Request | Method: {request.method} | Path: {request.url.path} | "
        f"Status: {response.status_code} | Duration: {duration_ms:.1f}ms"
    )
    return response
