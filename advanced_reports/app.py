"""FastAPI application entry point for the advanced reports service."""

from typing import Callable, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import ResponseValidationError, RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from advanced_reports.core.database import init_db
from advanced_reports.core.router import register_routes
from advanced_reports.logging.middleware import LoggingMiddleware
from advanced_reports.logging.exception_handlers import (
    response_validation_exception_handler,
    request_validation_exception_handler,
    general_exception_handler,
    http_exception_handler,
)


def create_app(init_database: bool = True, log_sessions: Optional[Callable[[], Session]] = None) -> FastAPI:
    """Build the application.

    ``log_sessions`` replaces the session factory request logs are written with.
    """
    app = FastAPI(
        title="Advanced Reports",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    if init_database:
        init_db()
    app.state.log_sessions = log_sessions

    # Add request logger middleware
    app.add_middleware(LoggingMiddleware)

    # Response validation errors aren't captured by the middleware
    app.add_exception_handler(ResponseValidationError, response_validation_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)

    @app.get("/api/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app
