# offerwatch/scanners/daily.py
"""
Daily scanner: the primary offer scanner.

Fetches each site's promotions page directly with requests and pulls offer
phrases out of the visible page text.
"""

from __future__ import annotations

import logging
from typing import List

import requests

from offerwatch.scanners.base import BaseScanner, OfferDraft, TargetSite
from offerwatch.scanners.extract import extract_offers, page_text

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; offerwatch-daily/1.0)",
    "Accept": "text/html,application/xhtml+xml",
}


class DailyScanner(BaseScanner):
    name = "daily-scanner"

    def __init__(self, sites, timeout: float = 15, session: requests.Session | None = None):
        super().__init__(sites, timeout)
        self.session = session or requests.Session()
        self.session.headers.update(HEADERS)

    def scan_site(self, site: TargetSite) -> List[OfferDraft]:
        resp = self.session.get(site.scan_url, timeout=self.timeout)
        resp.raise_for_status()
        drafts = extract_offers(page_text(resp.text), url=site.scan_url)
        logger.debug("%s: %d offers on %s", self.name, len(drafts), site.scan_url)
        return drafts
