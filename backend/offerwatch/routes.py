# offerwatch/routes.py
"""
Route registrar. Mount order matters:

    1. API blueprints (offers, scanner, url validator)
    2. fixed download routes
    3. pre-flight short-circuit for every path
    4. client assets (dev or prod), last so the catch-all shadows nothing
"""

from __future__ import annotations

from flask import Flask, jsonify, request

from offerwatch.downloads import downloads_bp
from offerwatch.frontend import serve_static, setup_dev_assets
from offerwatch.offers import offers_bp
from offerwatch.scanners import scanner_bp
from offerwatch.url_validator import url_validator_bp


def register_routes(app: Flask) -> None:
    app.register_blueprint(offers_bp)
    app.register_blueprint(scanner_bp)
    app.register_blueprint(url_validator_bp)
    app.register_blueprint(downloads_bp)

    @app.get("/health")
    def health():
        return jsonify(status="up and running"), 200

    # CORS headers are added by flask-cors; this only guarantees that an
    # OPTIONS request to any path, routed or not, gets a 200. Runs before
    # dispatch, so routing errors never surface for pre-flight requests.
    @app.before_request
    def preflight():
        if request.method == "OPTIONS":
            return app.make_default_options_response()
        return None

    if app.config["APP_ENV"] == "development":
        setup_dev_assets(app)
    else:
        serve_static(app)
