# offerwatch/scanners/base.py
"""
Base classes for the offer scanners.

Flow:
    BaseScanner.scan_all_sites()
        └── scan_site(site) per TargetSite  →  list[OfferDraft]
              └── offers.store.upsert_offers()

Each site is its own failure domain: one site timing out or returning
garbage is recorded in the ScanReport and the pass moves on.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


def now_utc() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TargetSite:
    slug: str
    name: str
    url: str
    promotions_url: Optional[str] = None
    signup_url: Optional[str] = None

    @property
    def scan_url(self) -> str:
        return self.promotions_url or self.url


@dataclass
class OfferDraft:
    """An offer pulled off a page, not yet persisted."""
    title: str
    description: str = ""
    url: Optional[str] = None


@dataclass
class ScanReport:
    """
    Outcome of one pass over all target sites.

    errors maps site slug → error message for the sites that failed.
    """
    scanner: str
    started_at: datetime = field(default_factory=now_utc)
    finished_at: Optional[datetime] = None
    sites_scanned: int = 0
    offers_found: int = 0
    offers_stored: int = 0
    errors: Dict[str, str] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.sites_scanned > 0 and len(self.errors) < self.sites_scanned

    def to_dict(self) -> dict:
        return {
            "scanner": self.scanner,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "sitesScanned": self.sites_scanned,
            "offersFound": self.offers_found,
            "offersStored": self.offers_stored,
            "errors": dict(self.errors),
            "durationSeconds": self.duration_seconds,
        }


class ScanError(RuntimeError):
    """Every site in a pass failed. Raised so the job registry marks the run failed."""


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class BaseScanner(ABC):
    """
    To add a scanner:
        1. Subclass BaseScanner and set `name`
        2. Implement scan_site(site) -> list[OfferDraft]
        3. Register a job for it in offerwatch.bootstrap
    """

    name: str = "base"
    offer_type: str = "promotion"

    def __init__(self, sites: List[TargetSite], timeout: float = 15):
        self.sites = list(sites)
        self.timeout = timeout
        self.last_report: Optional[ScanReport] = None

    @abstractmethod
    def scan_site(self, site: TargetSite) -> List[OfferDraft]:
        ...

    def store(self, site: TargetSite, drafts: List[OfferDraft]) -> int:
        from offerwatch.offers.store import upsert_offers
        return upsert_offers(site, drafts, source=self.name, offer_type=self.offer_type)

    def scan_all_sites(self) -> ScanReport:
        """
        Scan every target site once. DO NOT OVERRIDE, implement scan_site().

        Raises ScanError only when not a single site could be scanned.
        """
        report = ScanReport(scanner=self.name)
        start = time.monotonic()
        logger.info("%s: scanning %d sites", self.name, len(self.sites))

        for site in self.sites:
            report.sites_scanned += 1
            try:
                drafts = self.scan_site(site)
                report.offers_found += len(drafts)
                if drafts:
                    report.offers_stored += self.store(site, drafts)
            except Exception as e:
                logger.warning("%s: %s failed: %s", self.name, site.slug, e)
                report.errors[site.slug] = f"{type(e).__name__}: {e}"[:300]

        report.finished_at = now_utc()
        report.duration_seconds = round(time.monotonic() - start, 2)
        self.last_report = report

        logger.info(
            "%s: %d sites, %d offers, %d errors in %.1fs",
            self.name, report.sites_scanned, report.offers_found,
            len(report.errors), report.duration_seconds,
        )
        if report.sites_scanned and not report.success:
            raise ScanError(f"{self.name}: all {report.sites_scanned} sites failed")
        return report
