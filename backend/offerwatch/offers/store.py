# offerwatch/offers/store.py
"""
Offer persistence shared by every scanner.

Scanner A, scanner B and the new-member scanner write here concurrently.
Nothing assumes a row read a moment ago is still current: inserts rely on
the unique dedupe_key and fall back to an update when a concurrent writer
won the race.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError

from offerwatch.extensions import db
from offerwatch.models import Offer, now_utc

logger = logging.getLogger(__name__)


def dedupe_key(site_slug: str, offer_type: str, title: str) -> str:
    normalized = " ".join((title or "").lower().split())
    digest = hashlib.sha256(f"{site_slug}|{offer_type}|{normalized}".encode()).hexdigest()[:24]
    return f"{offer_type}:{site_slug}:{digest}"


def standard_dedupe_key(site_slug: str) -> str:
    return f"standard:{site_slug}"


def _refresh(offer: Offer, source: str, url: Optional[str], description: Optional[str]) -> None:
    offer.last_seen_at = now_utc()
    offer.status = "active"
    offer.source = source
    if url:
        offer.url = url
    if description:
        offer.description = description


def insert_or_refresh(
    site,
    key: str,
    title: str,
    offer_type: str,
    source: str,
    url: Optional[str] = None,
    description: Optional[str] = None,
    refresh: bool = True,
) -> bool:
    """
    Insert an offer by dedupe key. Returns True when a new row was created.
    With refresh=False an existing row is left untouched.
    """
    existing = Offer.query.filter_by(dedupe_key=key).first()
    if existing:
        if refresh:
            _refresh(existing, source, url, description)
            db.session.commit()
        return False

    offer = Offer(
        site_slug=site.slug,
        site_name=site.name,
        offer_type=offer_type,
        title=title[:255],
        description=description,
        url=url,
        source=source,
        status="active",
        dedupe_key=key,
    )
    try:
        db.session.add(offer)
        db.session.commit()
        return True
    except IntegrityError:
        # Another scanner inserted the same key between our read and write
        db.session.rollback()
        logger.debug("Concurrent insert for %s, refreshing instead", key)
        if refresh:
            existing = Offer.query.filter_by(dedupe_key=key).first()
            if existing:
                _refresh(existing, source, url, description)
                db.session.commit()
        return False


def upsert_offers(site, drafts: Iterable, source: str, offer_type: str = "promotion") -> int:
    """Store scanner drafts for one site. Returns the number of new rows."""
    created = 0
    for draft in drafts:
        key = dedupe_key(site.slug, offer_type, draft.title)
        if insert_or_refresh(
            site, key, draft.title, offer_type, source,
            url=draft.url, description=draft.description,
        ):
            created += 1
    return created
