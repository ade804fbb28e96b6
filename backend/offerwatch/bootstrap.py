# offerwatch/bootstrap.py
"""
Service bootstrap: brings up background scanning once the HTTP listener
is bound.

Startup sequence (every step fault isolated, run strictly in order):

    1. start-daily-scanner          schedule the primary scanner
       start-proxy-scanner          schedule the redundant scanner
    2. initial-scan                 one immediate full scan
    3. validate-new-member-offers   flag stale / broken new-member offers
    4. seed-standard-offers         ensure one standard offer per site
    5. schedule-new-member-refresh  every 24h, first run 24h from now

The primary and proxy scanners are two separate jobs on purpose. They fail
in different ways, and coverage has to survive either one being broken, so
each start is its own step.

Usage in the app factory:
    from offerwatch.bootstrap import init_background
    init_background(app)

and once the listener is bound:
    app.extensions["offerwatch"]["bootstrap"].start(server)
"""

from __future__ import annotations

import logging
import threading
from contextlib import nullcontext
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from offerwatch.jobs import JobRegistry, JobState, ScanJob

logger = logging.getLogger("offerwatch.bootstrap")

DAILY_SCANNER_JOB = "daily-scanner"
PROXY_SCANNER_JOB = "proxy-scanner"
NEW_MEMBER_REFRESH_JOB = "new-member-refresh"

# 86,400,000 ms
NEW_MEMBER_REFRESH_INTERVAL = timedelta(milliseconds=24 * 60 * 60 * 1000)

# At most one bootstrap may run per process
_active: Optional["ServiceBootstrap"] = None
_active_lock = threading.Lock()


class BootstrapStepError(RuntimeError):
    """A startup step finished without raising but did not succeed."""


class ServiceBootstrap:
    def __init__(
        self,
        registry: JobRegistry,
        daily_scanner,
        proxy_scanner,
        new_member_scanner,
        context: Callable[[], Any] | None = None,
        daily_interval: timedelta = timedelta(hours=24),
        proxy_interval: timedelta = timedelta(hours=24),
    ):
        self.registry = registry
        self.daily_scanner = daily_scanner
        self.proxy_scanner = proxy_scanner
        self.new_member_scanner = new_member_scanner
        self._context = context or nullcontext
        self._started = False
        self._start_lock = threading.Lock()
        self.report: Dict[str, str] = {}

        # Registration happens here, not in start(): a duplicate job name
        # must stop the process before anything runs.
        registry.register(ScanJob(
            DAILY_SCANNER_JOB, daily_interval,
            self._in_context(daily_scanner.scan_all_sites),
            description="Primary daily offer scan",
        ))
        registry.register(ScanJob(
            PROXY_SCANNER_JOB, proxy_interval,
            self._in_context(proxy_scanner.scan_all_sites),
            description="Redundant proxy offer scan",
        ))
        registry.register(ScanJob(
            NEW_MEMBER_REFRESH_JOB, NEW_MEMBER_REFRESH_INTERVAL,
            self._in_context(new_member_scanner.update_database_with_working_offers),
            description="Refresh new-member offers",
        ))

    def _in_context(self, fn: Callable[[], Any]) -> Callable[[], Any]:
        def wrapper():
            with self._context():
                return fn()
        wrapper.__name__ = getattr(fn, "__name__", "entry_point")
        return wrapper

    @property
    def started(self) -> bool:
        return self._started

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _initial_scan(self) -> None:
        if not self.registry.run_once(DAILY_SCANNER_JOB):
            job = self.registry.get(DAILY_SCANNER_JOB)
            if job.state is JobState.FAILED:
                raise BootstrapStepError(f"initial scan failed: {job.last_error}")
            raise BootstrapStepError("initial scan skipped, scanner already busy")

    def _validate_offers(self) -> None:
        self.registry.run_bounded(
            "new-member offer validation",
            self._in_context(self.new_member_scanner.validate_existing_offers),
        )

    def _seed_offers(self) -> None:
        self.registry.run_bounded(
            "standard offer seeding",
            self._in_context(self.new_member_scanner.add_standard_new_member_offers),
        )

    def steps(self) -> List[Tuple[str, Callable[[], Any]]]:
        return [
            ("start-daily-scanner", lambda: self.registry.schedule(DAILY_SCANNER_JOB)),
            ("start-proxy-scanner", lambda: self.registry.schedule(PROXY_SCANNER_JOB)),
            ("initial-scan", self._initial_scan),
            ("validate-new-member-offers", self._validate_offers),
            ("seed-standard-offers", self._seed_offers),
            ("schedule-new-member-refresh", lambda: self.registry.schedule(NEW_MEMBER_REFRESH_JOB)),
        ]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, listener=None) -> Dict[str, str]:
        """
        Run the startup sequence once. Must be called after the listener
        is bound and announced. Never raises.
        """
        global _active

        try:
            with self._start_lock:
                if self._started:
                    logger.warning("Bootstrap already started, ignoring second start")
                    return self.report
                with _active_lock:
                    if _active is not None and _active is not self:
                        logger.warning("Another bootstrap is already running in this process")
                        return self.report
                    _active = self
                self._started = True

            address = getattr(listener, "server_address", None)
            logger.info("Starting background scanning%s", f" (listener {address})" if address else "")

            for name, step in self.steps():
                logger.info("Bootstrap step %s", name)
                try:
                    step()
                    self.report[name] = "ok"
                except Exception as e:
                    logger.exception("Bootstrap step %s failed", name)
                    self.report[name] = f"failed: {type(e).__name__}: {e}"

            failed = [name for name, outcome in self.report.items() if outcome != "ok"]
            if failed:
                logger.warning("Background scanning started with failed steps: %s", ", ".join(failed))
            else:
                logger.info("Background scanning services started")
        except Exception:
            logger.exception("Failed to start background scanning services")

        return self.report

    def stop(self) -> None:
        global _active
        self.registry.shutdown()
        with _active_lock:
            if _active is self:
                _active = None


def build_scanners(app) -> Dict[str, Any]:
    from offerwatch.scanners.sites import load_sites
    from offerwatch.scanners.daily import DailyScanner
    from offerwatch.scanners.proxy import ProxyScanner
    from offerwatch.scanners.new_member import NewMemberScanner

    cfg = app.config
    sites = load_sites(cfg.get("TARGET_SITES_FILE"))
    http_timeout = cfg["SCAN_HTTP_TIMEOUT"]
    return {
        "daily_scanner": DailyScanner(sites, timeout=http_timeout),
        "proxy_scanner": ProxyScanner(sites, timeout=http_timeout, proxy_url=cfg.get("SCANNER_PROXY_URL")),
        "new_member_scanner": NewMemberScanner(
            sites, timeout=http_timeout, stale_after_days=cfg["OFFER_STALE_AFTER_DAYS"],
        ),
    }


def init_background(app, scanners: Dict[str, Any] | None = None, scheduler=None) -> ServiceBootstrap:
    """Wire scanners, registry and bootstrap into app.extensions (does not start anything)."""
    cfg = app.config
    registry = JobRegistry(scheduler=scheduler, timeout=cfg["JOB_TIMEOUT_SECONDS"])
    bootstrap = ServiceBootstrap(
        registry,
        context=app.app_context,
        daily_interval=timedelta(hours=cfg["DAILY_SCAN_INTERVAL_HOURS"]),
        proxy_interval=timedelta(hours=cfg["PROXY_SCAN_INTERVAL_HOURS"]),
        **(scanners or build_scanners(app)),
    )
    app.extensions["offerwatch"] = {"registry": registry, "bootstrap": bootstrap}
    return bootstrap
