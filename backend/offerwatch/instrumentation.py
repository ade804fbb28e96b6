# offerwatch/instrumentation.py
"""
Request instrumentation: one diagnostic line per API response.

    GET /api/offers 200 in 12ms :: {"count":3}

Only paths under API_PREFIX are logged. The JSON body is read from the
finished response without touching what is sent to the client. Lines
longer than MAX_LINE_LENGTH are cut and end with an ellipsis.

Logging here is best effort: a failure is swallowed (and noted at DEBUG)
so it can never turn into a failed request.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

from flask import Flask, g, request

API_PREFIX = "/api"
MAX_LINE_LENGTH = 80
ELLIPSIS = "…"

http_logger = logging.getLogger("offerwatch.http")
logger = logging.getLogger(__name__)

_NO_BODY = object()


def format_request_line(method: str, path: str, status: int, duration_ms: int, body: Any = _NO_BODY) -> str:
    line = f"{method} {path} {status} in {duration_ms}ms"
    if body is not _NO_BODY and body is not None:
        line += " :: " + json.dumps(body, separators=(",", ":"), ensure_ascii=False)
    if len(line) > MAX_LINE_LENGTH:
        line = line[: MAX_LINE_LENGTH - 1] + ELLIPSIS
    return line


def _captured_json(response) -> Any:
    # Streamed and passthrough bodies are left alone, reading them would consume them
    if not response.is_json or response.is_streamed or response.direct_passthrough:
        return _NO_BODY
    return response.get_json(silent=True)


def init_request_logging(app: Flask, clock: Callable[[], float] = time.monotonic) -> None:
    @app.before_request
    def _start_request_timer():
        g.request_started_at = clock()

    @app.after_request
    def _log_api_request(response):
        try:
            path = request.path
            if path.startswith(API_PREFIX):
                started = g.get("request_started_at")
                duration_ms = round((clock() - started) * 1000) if started is not None else 0
                http_logger.info(format_request_line(
                    request.method, path, response.status_code, duration_ms,
                    _captured_json(response),
                ))
        except Exception:
            logger.debug("Request logging failed", exc_info=True)
        return response
