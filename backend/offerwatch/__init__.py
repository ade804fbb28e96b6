# offerwatch/__init__.py
"""
App factory for the offer-harvesting service.

    - Config from environment variables (offerwatch.config), overridable
    - Request instrumentation on every /api response
    - JSON error boundary; no framework error pages, no tracebacks to clients
    - CORS for the browser extension and hosted front-ends
    - Background scanning wired but NOT started here: it starts once the
      listener is bound (offerwatch.server), never while building the app
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Flask

from .config import load_config
from .extensions import init_extensions
from . import models
from .bootstrap import init_background
from .cors import init_cors
from .errors import register_error_handlers
from .instrumentation import init_request_logging
from .routes import register_routes

__version__ = "1.0.0"


def _configure_logging(development: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if development else logging.INFO,
        format="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
        datefmt="%H:%M:%S" if development else "%Y-%m-%d %H:%M:%S",
    )
    # Werkzeug logs every request
    logging.getLogger("werkzeug").setLevel(logging.INFO)
    # Quieten noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def create_app(
    config: Optional[Dict[str, Any]] = None,
    scanners: Optional[Dict[str, Any]] = None,
    scheduler=None,
) -> Flask:
    """
    Build the Flask app.

    config      overrides applied on top of the environment
    scanners    replacement scanner subsystems (daily_scanner,
                proxy_scanner, new_member_scanner); tests pass fakes
    scheduler   replacement APScheduler-compatible scheduler
    """
    app = Flask(__name__, static_folder=None)
    app.config.update(load_config(config))

    development = app.config["APP_ENV"] == "development"
    _configure_logging(development)
    app.logger.setLevel(logging.DEBUG if development else logging.INFO)

    init_extensions(app)
    init_cors(app)
    init_request_logging(app)
    register_error_handlers(app)
    register_routes(app)

    # Background jobs are registered now (duplicate names fail here) and
    # started by offerwatch.server after the listener is bound.
    init_background(app, scanners=scanners, scheduler=scheduler)

    return app


__all__ = ["create_app", "models", "__version__"]
