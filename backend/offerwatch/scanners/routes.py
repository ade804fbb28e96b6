# offerwatch/scanners/routes.py
"""
Scanner API: inspect and trigger background jobs.

    GET  /api/scanner/jobs             all jobs with run state
    GET  /api/scanner/jobs/<name>      one job
    POST /api/scanner/jobs/<name>/run  run now (202; 404 unknown; 409 busy)
    GET  /api/scanner/bootstrap        outcome of each startup step
"""

from __future__ import annotations

import logging
import threading
from flask import Blueprint, current_app, jsonify

from offerwatch.errors import ApiError
from offerwatch.jobs import UnknownJobError

logger = logging.getLogger(__name__)

scanner_bp = Blueprint("scanner", __name__, url_prefix="/api/scanner")


def _background():
    return current_app.extensions["offerwatch"]


def _job_or_404(name: str):
    try:
        return _background()["registry"].get(name)
    except UnknownJobError:
        raise ApiError(f"unknown job '{name}'", 404)


@scanner_bp.get("/jobs")
def list_jobs():
    jobs = _background()["registry"].snapshot()
    return jsonify(count=len(jobs), jobs=jobs), 200


@scanner_bp.get("/jobs/<name>")
def get_job(name):
    registry = _background()["registry"]
    _job_or_404(name)
    data = next(j for j in registry.snapshot() if j["name"] == name)
    return jsonify(data), 200


@scanner_bp.post("/jobs/<name>/run")
def run_job(name):
    registry = _background()["registry"]
    job = _job_or_404(name)
    if job.busy:
        raise ApiError(f"job '{name}' is already running", 409)

    thread = threading.Thread(
        target=registry.run_once, args=(name,), daemon=True, name=f"manual-{name}",
    )
    thread.start()
    logger.info("Manual run of %s requested", name)

    return jsonify(message="job started", job=name), 202


@scanner_bp.get("/bootstrap")
def bootstrap_report():
    bootstrap = _background()["bootstrap"]
    return jsonify(started=bootstrap.started, steps=bootstrap.report), 200
