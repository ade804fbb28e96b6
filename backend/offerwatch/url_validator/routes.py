# offerwatch/url_validator/routes.py
"""
URL validator: checks that an offer link still answers.

    POST /api/validate-url  {"url": "https://..."}
      → {"url": ..., "ok": true|false, "status_code": 200|null}
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse

import requests
from flask import Blueprint, jsonify, request

from offerwatch.errors import ApiError

logger = logging.getLogger(__name__)

url_validator_bp = Blueprint("url_validator", __name__, url_prefix="/api")

TIMEOUT = 10
HEADERS = {"User-Agent": "offerwatch-url-validator/1.0"}


def check_url(url: str) -> dict:
    try:
        resp = requests.head(url, timeout=TIMEOUT, allow_redirects=True, headers=HEADERS)
        if resp.status_code in (405, 501):
            resp = requests.get(url, timeout=TIMEOUT, allow_redirects=True, headers=HEADERS, stream=True)
            resp.close()
    except requests.RequestException as e:
        logger.info("URL check failed for %s: %s", url, e)
        return {"url": url, "ok": False, "status_code": None, "error": type(e).__name__}
    return {"url": url, "ok": resp.status_code < 400, "status_code": resp.status_code}


@url_validator_bp.post("/validate-url")
def validate_url():
    data = request.get_json(silent=True) or {}
    url = (data.get("url") or "").strip()
    if not url:
        raise ApiError("url is required", 400)

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ApiError("url must be an absolute http(s) URL", 400)

    return jsonify(check_url(url)), 200
