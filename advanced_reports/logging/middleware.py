"""Middleware writing one ``Log`` row per API request."""

import json
import logging
import time
from datetime import datetime
from typing import Callable

from fastapi import Request, Response
from starlette.background import BackgroundTask, BackgroundTasks
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from advanced_reports.core.config import APPLICATION_ID, HOSTNAME, USERNAME
from advanced_reports.logging.models import Log, log_sessions

logger = logging.getLogger(__name__)

# Paths that are not logged
EXCLUDED_PATHS = ["/api/docs", "/api/redoc", "/api/openapi.json"]

# Response bodies of these content types are logged; rendered reports are not
LOGGED_CONTENT_TYPES = ("application/json", "text/plain")


class LoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.username = USERNAME
        self.hostname = HOSTNAME
        self.application_id = APPLICATION_ID
        logger.info(
            "Logging middleware initialized with username: %s on host: %s, App ID: %s",
            self.username,
            self.hostname,
            self.application_id,
        )

    async def dispatch(self, request: Request, call_next: Callable):
        if any(request.url.path.startswith(path) for path in EXCLUDED_PATHS):
            return await call_next(request)

        start_time = time.time()

        body_bytes = await request.body()
        request_body = body_bytes.decode("utf-8", errors="ignore")

        # Reconstruct stream
        async def receive() -> dict:
            return {"type": "http.request", "body": body_bytes}

        request = Request(request.scope, receive=receive)
        request.state.body = request_body

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        status_code = response.status_code
        content_type = response.headers.get("content-type", "")
        should_log_body = content_type.startswith(LOGGED_CONTENT_TYPES) or status_code >= 400

        response_body = b""
        if isinstance(response, Response) and hasattr(response, "body"):
            response_body = response.body
        elif hasattr(response, "body_iterator") and should_log_body:
            original_iterator = response.body_iterator
            chunks = []

            async def buffer_iterator():
                nonlocal response_body
                async for chunk in original_iterator:
                    chunks.append(chunk)
                    yield chunk
                response_body = b"".join(chunks)

            response.body_iterator = buffer_iterator()

        def log_to_db():
            if response_body and should_log_body:
                body_to_log = response_body.decode("utf-8", errors="ignore")
            elif not should_log_body:
                body_to_log = f"[{content_type or 'Response'} body not logged]"
            else:
                body_to_log = "[Response body not available]"

            with log_sessions(request)() as session:
                log = Log(
                    timestamp=datetime.now(),
                    method=request.method,
                    path=str(request.url.path),
                    status_code=status_code,
                    client_ip=request.client.host if request.client else None,
                    request_headers=json.dumps(dict(request.headers)),
                    request_body=request_body,
                    response_body=body_to_log,
                    processing_time=duration_ms,
                    user_agent=request.headers.get("user-agent"),
                    username=self.username,
                    hostname=self.hostname,
                    application_id=self.application_id,
                )
                session.add(log)
                session.commit()

        existing = getattr(response, "background", None)
        if existing is None:
            response.background = BackgroundTask(log_to_db)
        else:
            tasks = BackgroundTasks([existing])
            tasks.add_task(log_to_db)
            response.background = tasks
        return response
