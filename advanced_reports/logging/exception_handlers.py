# advanced_reports/logging/exception_handlers.py

import json
import logging
import traceback
from datetime import datetime
from typing import Any, Optional

from fastapi import Request, HTTPException
from fastapi.exceptions import ResponseValidationError, RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from advanced_reports.core.config import APPLICATION_ID, HOSTNAME, USERNAME
from advanced_reports.logging.models import Log, log_sessions

logger = logging.getLogger(__name__)


def safe_json_dumps(obj: Any) -> str:
    return json.dumps(obj, indent=2, default=str)


def get_request_body_safely(request: Request) -> str:
    """Request body captured by the logging middleware, if any."""
    return getattr(request.state, "body", None) or "Request body not captured"


def log_exception(request: Request, status_code: int, response_body: str, processing_time: Optional[float] = None) -> None:
    """Write a ``Log`` row for a failed request; failing to log is itself only logged."""
    try:
        with log_sessions(request)() as session:
            log = Log(
                timestamp=datetime.now(),
                method=request.method,
                path=str(request.url.path),
                status_code=status_code,
                client_ip=request.client.host if request.client else None,
                request_headers=json.dumps(dict(request.headers)),
                request_body=get_request_body_safely(request),
                response_body=response_body,
                processing_time=processing_time,
                user_agent=request.headers.get("user-agent"),
                username=USERNAME,
                hostname=HOSTNAME,
                application_id=APPLICATION_ID,
            )
            session.add(log)
            session.commit()
    except SQLAlchemyError as log_error:
        logger.error("Error logging exception: %s", log_error)


async def general_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions and log them to database"""
    error_traceback = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    log_exception(
        request,
        500,
        safe_json_dumps({"error": str(exc), "type": type(exc).__name__, "traceback": error_traceback}),
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"},
    )


async def response_validation_exception_handler(request: Request, exc: ResponseValidationError):
    log_exception(request, 500, safe_json_dumps(exc.errors()))
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error: Response validation failed."},
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    log_exception(request, 422, safe_json_dumps(exc.errors()))

    # Convert errors to a safe format for JSON response
    def convert_error(error):
        if isinstance(error, dict):
            return {k: convert_error(v) for k, v in error.items()}
        elif isinstance(error, list):
            return [convert_error(item) for item in error]
        else:
            return str(error)

    return JSONResponse(
        status_code=422,
        content={"detail": convert_error(exc.errors())},
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions and log 4xx/5xx errors"""
    if exc.status_code >= 400:
        log_exception(
            request,
            exc.status_code,
            safe_json_dumps({"detail": exc.detail, "headers": getattr(exc, "headers", None)}),
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )
