# offerwatch/offers/routes.py
from __future__ import annotations

import logging
from flask import Blueprint, current_app, jsonify, request

from offerwatch.errors import ApiError
from offerwatch.models import OFFER_STATUSES, OFFER_TYPES, Offer

logger = logging.getLogger(__name__)

offers_bp = Blueprint("offers", __name__, url_prefix="/api/offers")


@offers_bp.get("")
def list_offers():
    q = Offer.query

    site = (request.args.get("site") or "").strip().lower()
    if site:
        q = q.filter(Offer.site_slug == site)

    offer_type = (request.args.get("type") or "").strip().lower()
    if offer_type:
        if offer_type not in OFFER_TYPES:
            raise ApiError(f"type must be one of: {', '.join(OFFER_TYPES)}", 400)
        q = q.filter(Offer.offer_type == offer_type)

    status = (request.args.get("status") or "").strip().lower()
    if status:
        if status not in OFFER_STATUSES:
            raise ApiError(f"status must be one of: {', '.join(OFFER_STATUSES)}", 400)
        q = q.filter(Offer.status == status)

    offers = q.order_by(Offer.site_slug.asc(), Offer.last_seen_at.desc()).all()
    return jsonify(count=len(offers), offers=[o.to_dict() for o in offers]), 200


@offers_bp.get("/sites")
def list_sites():
    scanner = current_app.extensions["offerwatch"]["bootstrap"].daily_scanner
    sites = [
        {"slug": s.slug, "name": s.name, "url": s.url}
        for s in scanner.sites
    ]
    return jsonify(count=len(sites), sites=sites), 200
