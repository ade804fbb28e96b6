# offerwatch/frontend.py
"""
Client asset serving, chosen by APP_ENV.

    development → CLIENT_DIR, no caching
    anything else → STATIC_DIR (the built client)

Both mount a catch-all with an index.html fallback for client-side routing.
It is registered after every API route and refuses paths under /api, so
it can never shadow or mask an API endpoint.
"""

from __future__ import annotations

import logging
import os
from flask import Flask, abort, send_from_directory

from offerwatch.instrumentation import API_PREFIX

logger = logging.getLogger(__name__)


def _mount(app: Flask, root: str, max_age: int | None) -> bool:
    if not os.path.isdir(root):
        logger.warning("Client asset directory %s not found, not serving the client", root)
        return False

    index = os.path.join(root, "index.html")
    api_prefix = API_PREFIX.lstrip("/")

    def serve_client(path: str = ""):
        if path == api_prefix or path.startswith(api_prefix + "/"):
            abort(404)
        if path and os.path.isfile(os.path.join(root, path)):
            return send_from_directory(root, path, max_age=max_age)
        if not os.path.isfile(index):
            abort(404)
        return send_from_directory(root, "index.html", max_age=0)

    app.add_url_rule("/", endpoint="client_index", view_func=serve_client, methods=["GET"])
    app.add_url_rule("/<path:path>", endpoint="client_assets", view_func=serve_client, methods=["GET"])
    logger.info("Serving client assets from %s", root)
    return True


def setup_dev_assets(app: Flask) -> bool:
    return _mount(app, app.config["CLIENT_DIR"], max_age=0)


def serve_static(app: Flask) -> bool:
    return _mount(app, app.config["STATIC_DIR"], max_age=None)
