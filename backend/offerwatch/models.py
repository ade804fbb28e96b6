from __future__ import annotations

from datetime import datetime, timezone
from .extensions import db


def now_utc() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


OFFER_TYPES = ("standard", "new_member", "promotion")
OFFER_STATUSES = ("active", "stale", "broken")


class Offer(db.Model):
    __tablename__ = "offer"

    id = db.Column(db.Integer, primary_key=True)

    # Target site (sites live in configuration, not in the database)
    site_slug = db.Column(db.String(80), nullable=False, index=True)
    site_name = db.Column(db.String(120), nullable=False)

    # standard, new_member, promotion
    offer_type = db.Column(db.String(20), nullable=False, default="promotion", index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    url = db.Column(db.String(500), nullable=True)

    # Which scanner wrote the row: daily-scanner, proxy-scanner, new-member, seed
    source = db.Column(db.String(40), nullable=False)

    # active, stale, broken
    status = db.Column(db.String(20), nullable=False, default="active", index=True)

    # Several scanners write concurrently; the unique key is what keeps
    # the table free of duplicates, not read-before-write checks.
    dedupe_key = db.Column(db.String(200), nullable=False, unique=True)

    first_seen_at = db.Column(db.DateTime, nullable=False, default=now_utc)
    last_seen_at = db.Column(db.DateTime, nullable=False, default=now_utc)
    last_checked_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "site": self.site_slug,
            "siteName": self.site_name,
            "type": self.offer_type,
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "source": self.source,
            "status": self.status,
            "firstSeenAt": self.first_seen_at.isoformat() if self.first_seen_at else None,
            "lastSeenAt": self.last_seen_at.isoformat() if self.last_seen_at else None,
            "lastCheckedAt": self.last_checked_at.isoformat() if self.last_checked_at else None,
        }
