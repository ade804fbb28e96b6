"""Shared pytest fixtures: manual clock, fake scheduler, stub scanners, app."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.jobstores.base import JobLookupError

from offerwatch import create_app
from offerwatch.extensions import db
from offerwatch.scanners.sites import DEFAULT_SITES


class ManualClock:
    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class FakeScheduler:
    """
    Stands in for an APScheduler BackgroundScheduler. Jobs fire only when
    advance() moves the clock past their next fire time, which is computed
    by the real trigger.
    """

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self.running = False
        self.jobs = {}
        self.fired = []

    def add_job(self, func, trigger=None, args=(), id=None, **kwargs):
        self.jobs[id] = {
            "func": func,
            "args": list(args),
            "trigger": trigger,
            "kwargs": kwargs,
            "next": trigger.get_next_fire_time(None, self.clock()),
        }

    def remove_job(self, job_id):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    def start(self):
        self.running = True

    def shutdown(self, wait=True):
        self.running = False

    def advance(self, delta: timedelta) -> None:
        target = self.clock() + delta
        while True:
            due = [
                (job["next"], job_id)
                for job_id, job in self.jobs.items()
                if job["next"] is not None and job["next"] <= target
            ]
            if not due:
                break
            when, job_id = min(due)
            self.clock.now = when
            job = self.jobs[job_id]
            self.fired.append((job_id, when))
            job["func"](*job["args"])
            if job_id in self.jobs:
                job["next"] = job["trigger"].get_next_fire_time(when, when)
        self.clock.now = target

    def fired_for(self, job_id):
        return [when for fired_id, when in self.fired if fired_id == job_id]


class StubScanner:
    def __init__(self, name: str, sites=(), fail: bool = False):
        self.name = name
        self.sites = list(sites)
        self.fail = fail
        self.calls = 0
        self.gate: threading.Event | None = None
        self.entered = threading.Event()

    def scan_all_sites(self):
        self.calls += 1
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.fail:
            raise RuntimeError(f"{self.name} is down")
        return {"scanner": self.name}


class StubNewMemberScanner:
    def __init__(self):
        self.calls = []

    def validate_existing_offers(self):
        self.calls.append("validate")

    def add_standard_new_member_offers(self):
        self.calls.append("seed")

    def update_database_with_working_offers(self):
        self.calls.append("refresh")


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def fake_scheduler(clock):
    return FakeScheduler(clock)


@pytest.fixture()
def scanners():
    return {
        "daily_scanner": StubScanner("daily-scanner", DEFAULT_SITES[:3]),
        "proxy_scanner": StubScanner("proxy-scanner", DEFAULT_SITES[:3]),
        "new_member_scanner": StubNewMemberScanner(),
    }


@pytest.fixture()
def app_config(tmp_path):
    return {
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "APP_ENV": "production",
        "ASSET_ROOT": str(tmp_path),
        "STATIC_DIR": str(tmp_path / "dist" / "public"),
        "CLIENT_DIR": str(tmp_path / "client"),
        "JOB_TIMEOUT_SECONDS": 5,
    }


@pytest.fixture()
def make_app(app_config, scanners, fake_scheduler):
    created = []

    def _make(**overrides):
        app = create_app(
            config={**app_config, **overrides},
            scanners=scanners,
            scheduler=fake_scheduler,
        )
        created.append(app)
        return app

    yield _make

    for app in created:
        app.extensions["offerwatch"]["bootstrap"].stop()
        with app.app_context():
            db.session.remove()
            db.drop_all()


@pytest.fixture()
def app(make_app):
    return make_app()


@pytest.fixture()
def client(app):
    return app.test_client()
