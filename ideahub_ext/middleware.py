"""Request correlation hooks."""
from __future__ import annotations

import time
import uuid

from flask import Flask, g, request

from ideahub_ext.logging import log_info


def init_app(app: Flask) -> None:
    """Tag every request with an id and log its completion."""

    @app.before_request
    def _capture_request_metadata() -> None:
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        g.request_started_at = time.perf_counter()

    @app.after_request
    def _inject_response_headers(response):  # type: ignore[override]
        if hasattr(g, "request_id"):
            response.headers["X-Request-ID"] = g.request_id
        started = g.pop("request_started_at", None)
        latency_ms = int((time.perf_counter() - started) * 1000) if started is not None else None
        log_info("request completed", component="http", status=response.status_code, latency_ms=latency_ms)
        return response
