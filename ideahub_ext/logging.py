"""Structured, redacting log output for the auth service."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable

from flask import Flask, current_app, g, has_request_context, request

from ideahub_ext.db import utcnow


class StructuredFormatter(logging.Formatter):
    """Render records as JSON or ``[LEVEL] msg key=value`` lines."""

    def __init__(self, as_json: bool = True, redact_keys: Iterable[str] = ()) -> None:
        super().__init__()
        self.as_json = as_json
        self.redact_keys = {key.lower() for key in redact_keys}

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload = _record_payload(record, self.redact_keys)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if self.as_json:
            return json.dumps(payload, ensure_ascii=True, default=str)
        return _format_plain(payload)


def _format_plain(payload: Dict[str, Any]) -> str:
    parts = [f"[{payload['level']}]", payload.get("msg", "").strip()]
    for key in ("component", "route", "method", "request_id"):
        value = payload.get(key)
        if value:
            parts.append(f"{key}={value}")
    for key, value in (payload.get("context") or {}).items():
        parts.append(f"{key}={value}")
    if "exception" in payload:
        parts.append("\n" + payload["exception"])
    return " ".join(parts)


def _record_payload(record: logging.LogRecord, redact_keys: set[str]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "ts": utcnow().isoformat() + "Z",
        "level": record.levelname,
        "msg": record.getMessage(),
        "component": getattr(record, "component", "app"),
    }
    if has_request_context():
        payload["request_id"] = getattr(g, "request_id", None)
        payload["route"] = request.path
        payload["method"] = request.method
    context = getattr(record, "context", None)
    if context:
        payload["context"] = {
            key: ("***" if key.lower() in redact_keys else value) for key, value in context.items()
        }
    return {k: v for k, v in payload.items() if v is not None}


def configure_logging(app: Flask) -> None:
    """Attach a single structured handler to ``app.logger``."""

    level_name = app.config.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    app.logger.setLevel(level)

    use_json = app.config.get("LOG_FORMAT", "json").lower() == "json"
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter(as_json=use_json, redact_keys=app.config.get("REDACT_KEYS", [])))

    app.logger.handlers.clear()
    app.logger.addHandler(handler)


def log_info(message: str, *, component: str = "app", **extra: Any) -> None:
    current_app.logger.info(message, extra=_prepare_extra(component, extra))


def log_warn(message: str, *, component: str = "app", **extra: Any) -> None:
    current_app.logger.warning(message, extra=_prepare_extra(component, extra))


def log_error(message: str, *, component: str = "app", exc_info: bool = False, **extra: Any) -> None:
    current_app.logger.error(message, exc_info=exc_info, extra=_prepare_extra(component, extra))


def _prepare_extra(component: str, extra: Dict[str, Any]) -> Dict[str, Any]:
    # Keyword arguments other than ``context`` are folded into it so that
    # LogRecord attribute names can never collide with caller keys.
    context = extra.pop("context", None)
    if context is not None and not isinstance(context, dict):
        context = {"value": context}
    merged = dict(context or {})
    merged.update(extra)
    return {"component": component, "context": merged}
