# offerwatch/errors.py
"""
Request-path error boundary.

Two separate steps for every unhandled error:

    render_error(e)               → ({"message": ...}, status) for the client
    escalate_error(app, e, code)  → process-level policy, after the response
                                    is built; never changes what the client sees

Escalation policy (ERROR_ESCALATION):
    log    5xx tracebacks go to the "offerwatch.errors" logger (default)
    none   nothing beyond the client response

An optional ERROR_ESCALATION_HOOK(error, status) in app.config is called
after the policy, e.g. to notify a supervisor. The error is never re-raised.
"""

from __future__ import annotations

import logging
from typing import Tuple

from flask import Flask, Response, current_app, jsonify
from werkzeug.exceptions import HTTPException

error_logger = logging.getLogger("offerwatch.errors")

DEFAULT_MESSAGE = "Internal Server Error"


class ApiError(Exception):
    """Raise from a route to answer with a specific status and message."""

    def __init__(self, message: str, status: int = 500):
        super().__init__(message)
        self.message = message
        self.status = status


def error_status(e: BaseException) -> int:
    if isinstance(e, HTTPException) and e.code:
        return e.code
    for attr in ("status", "status_code"):
        value = getattr(e, attr, None)
        if isinstance(value, int) and 400 <= value <= 599:
            return value
    return 500


def error_message(e: BaseException) -> str:
    if isinstance(e, HTTPException):
        return e.description or e.name
    message = getattr(e, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(e) or DEFAULT_MESSAGE


def render_error(e: BaseException) -> Tuple[Response, int]:
    status = error_status(e)
    return jsonify({"message": error_message(e)}), status


def escalate_error(app: Flask, e: BaseException, status: int) -> None:
    policy = app.config.get("ERROR_ESCALATION", "log")
    if policy == "log" and status >= 500:
        error_logger.error(
            "Unhandled %s (%d): %s", type(e).__name__, status, e,
            exc_info=(type(e), e, e.__traceback__),
        )

    hook = app.config.get("ERROR_ESCALATION_HOOK")
    if hook is None:
        return
    try:
        hook(e, status)
    except Exception:
        error_logger.exception("Error escalation hook failed")


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(Exception)
    def handle_error(e):
        response, status = render_error(e)
        escalate_error(current_app._get_current_object(), e, status)
        return response, status
