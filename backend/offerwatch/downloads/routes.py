# offerwatch/downloads/routes.py
"""
Fixed download routes for the browser extension and its helper pages.

Files are resolved against ASSET_ROOT. These are registered before the
asset catch-all so they are never shadowed by it.
"""

from __future__ import annotations

import os
from flask import Blueprint, abort, current_app, send_file

downloads_bp = Blueprint("downloads", __name__)

JS_MIMETYPE = "application/javascript"

# url path → (file relative to ASSET_ROOT, forced mimetype)
DOWNLOADS = {
    "/extension-download": ("extension-download-v8.html", None),
    "/extension-download/v8": ("offerwatch-extension-v8.zip", None),
    "/simple-bookmarklet.html": ("public/simple-bookmarklet.html", None),
    "/legacy-auto-detector.js": ("public/legacy-auto-detector.js", JS_MIMETYPE),
    "/simple-scan.html": ("public/simple-scan.html", None),
    "/console-detector.js": ("public/console-detector.js", JS_MIMETYPE),
    "/working-extension.html": ("public/working-extension.html", None),
}


def _make_view(relative_path: str, mimetype: str | None):
    def view():
        path = os.path.join(current_app.config["ASSET_ROOT"], relative_path)
        if not os.path.isfile(path):
            abort(404)
        return send_file(path, mimetype=mimetype)
    return view


for _url, (_file, _mimetype) in DOWNLOADS.items():
    downloads_bp.add_url_rule(
        _url,
        endpoint=_url.strip("/").replace("/", "_").replace(".", "_").replace("-", "_"),
        view_func=_make_view(_file, _mimetype),
        methods=["GET"],
    )
