# offerwatch/offers/__init__.py
"""
Offers module: the offer store and the read-only offers API.

    store.py    dedupe-keyed upserts used by all scanners
    routes.py   GET /api/offers, GET /api/offers/sites
"""

from .routes import offers_bp

__all__ = ["offers_bp"]
