# offerwatch/scanners/new_member.py
"""
New-member offer scanner.

New-member offers are the sign-up deals for first-time users. Eligibility
rules change often, so they are re-validated regularly:

    validate_existing_offers()              flag stale and broken offers
    add_standard_new_member_offers()        one baseline offer per site (idempotent)
    update_database_with_working_offers()   re-scan sign-up pages, then both of the above

All three must be called inside a Flask app context.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, List

import requests

from offerwatch.extensions import db
from offerwatch.models import Offer, now_utc
from offerwatch.offers.store import insert_or_refresh, standard_dedupe_key
from offerwatch.scanners.base import BaseScanner, OfferDraft, ScanError, TargetSite
from offerwatch.scanners.extract import extract_offers, page_text

logger = logging.getLogger(__name__)

HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; offerwatch-validator/1.0)"}


class NewMemberScanner(BaseScanner):
    name = "new-member"
    offer_type = "new_member"

    def __init__(
        self,
        sites,
        timeout: float = 15,
        stale_after_days: int = 7,
        session: requests.Session | None = None,
    ):
        super().__init__(sites, timeout)
        self.stale_after = timedelta(days=stale_after_days)
        self.session = session or requests.Session()
        self.session.headers.update(HEADERS)

    def scan_site(self, site: TargetSite) -> List[OfferDraft]:
        url = site.signup_url or site.url
        resp = self.session.get(url, timeout=self.timeout)
        resp.raise_for_status()
        return extract_offers(page_text(resp.text), url=url)

    # ------------------------------------------------------------------

    def _is_reachable(self, url: str) -> bool:
        try:
            resp = self.session.head(url, timeout=self.timeout, allow_redirects=True)
            if resp.status_code in (405, 501):
                # Some sites refuse HEAD outright
                resp = self.session.get(url, timeout=self.timeout, stream=True)
                resp.close()
            return resp.status_code < 400
        except requests.RequestException as e:
            logger.debug("Offer URL %s unreachable: %s", url, e)
            return False

    def validate_existing_offers(self) -> Dict[str, int]:
        """Mark new-member offers broken (URL fails) or stale (not seen lately)."""
        now = now_utc()
        counts = {"checked": 0, "active": 0, "stale": 0, "broken": 0}

        offers = Offer.query.filter_by(offer_type="new_member").all()
        for offer in offers:
            counts["checked"] += 1
            if offer.url and not self._is_reachable(offer.url):
                offer.status = "broken"
            elif offer.last_seen_at and now - offer.last_seen_at > self.stale_after:
                offer.status = "stale"
            else:
                offer.status = "active"
            offer.last_checked_at = now
            counts[offer.status] += 1

        db.session.commit()
        logger.info(
            "Validated %d new-member offers: %d active, %d stale, %d broken",
            counts["checked"], counts["active"], counts["stale"], counts["broken"],
        )
        return counts

    def add_standard_new_member_offers(self) -> int:
        """Ensure every site has exactly one standard offer. Returns rows created."""
        created = 0
        for site in self.sites:
            if insert_or_refresh(
                site,
                standard_dedupe_key(site.slug),
                title=f"{site.name} sign-up bonus",
                offer_type="standard",
                source="seed",
                url=site.signup_url or site.url,
                description=f"Standard welcome offer for new {site.name} players.",
                refresh=False,
            ):
                created += 1
        logger.info("Standard offers: %d created, %d already present", created, len(self.sites) - created)
        return created

    def update_database_with_working_offers(self) -> dict:
        scan_error = None
        try:
            self.scan_all_sites()
        except ScanError as e:
            # Validation and seeding still run; the error surfaces afterwards
            scan_error = e
        validation = self.validate_existing_offers()
        seeded = self.add_standard_new_member_offers()
        if scan_error is not None:
            raise scan_error
        return {"scan": self.last_report.to_dict(), "validation": validation, "seeded": seeded}
