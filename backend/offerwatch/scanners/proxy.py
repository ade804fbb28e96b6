# offerwatch/scanners/proxy.py
"""
Proxy scanner: the redundant scanner.

Independent of the daily scanner on purpose: a different HTTP client
(httpx), an optional outbound proxy (SCANNER_PROXY_URL) and metadata-only
extraction (<title>, description and og: tags). When a site blocks direct
traffic or reshuffles its page body, this one usually still gets through.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from offerwatch.scanners.base import BaseScanner, OfferDraft, TargetSite
from offerwatch.scanners.extract import extract_offers, page_metadata

logger = logging.getLogger(__name__)

HEADERS = {"User-Agent": "offerwatch-proxy/1.0"}


class ProxyScanner(BaseScanner):
    name = "proxy-scanner"

    def __init__(
        self,
        sites,
        timeout: float = 15,
        proxy_url: Optional[str] = None,
        client: httpx.Client | None = None,
    ):
        super().__init__(sites, timeout)
        self.proxy_url = proxy_url
        self._client = client

    def _make_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            headers=HEADERS,
            proxy=self.proxy_url,
        )

    def scan_all_sites(self):
        # One client per pass, so a broken connection pool never outlives a run
        if self._client is not None:
            return super().scan_all_sites()
        with self._make_client() as client:
            self._client = client
            try:
                return super().scan_all_sites()
            finally:
                self._client = None

    def scan_site(self, site: TargetSite) -> List[OfferDraft]:
        if self._client is not None:
            return self._fetch(self._client, site)
        with self._make_client() as client:
            return self._fetch(client, site)

    def _fetch(self, client: httpx.Client, site: TargetSite) -> List[OfferDraft]:
        resp = client.get(site.url)
        resp.raise_for_status()
        return extract_offers(page_metadata(resp.text), url=str(resp.url))
