from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta

import pytest

from offerwatch import bootstrap as bootstrap_module
from offerwatch.bootstrap import (
    DAILY_SCANNER_JOB,
    NEW_MEMBER_REFRESH_INTERVAL,
    NEW_MEMBER_REFRESH_JOB,
    PROXY_SCANNER_JOB,
    ServiceBootstrap,
)
from offerwatch.jobs import DuplicateJobError, JobRegistry, ScanJob

from conftest import StubNewMemberScanner, StubScanner

DAY = timedelta(hours=24)

STEP_NAMES = [
    "start-daily-scanner",
    "start-proxy-scanner",
    "initial-scan",
    "validate-new-member-offers",
    "seed-standard-offers",
    "schedule-new-member-refresh",
]


class RecordingNewMember(StubNewMemberScanner):
    def __init__(self, calls, fail=()):
        super().__init__()
        self._log = calls
        self.fail = set(fail)

    def _record(self, name):
        self._log.append(name)
        if name in self.fail:
            raise RuntimeError(f"{name} exploded")

    def validate_existing_offers(self):
        self._record("validate")

    def add_standard_new_member_offers(self):
        self._record("seed")

    def update_database_with_working_offers(self):
        self._record("refresh")


class RecordingScanner(StubScanner):
    def __init__(self, name, calls, fail=False):
        super().__init__(name, fail=fail)
        self._log = calls

    def scan_all_sites(self):
        self._log.append(f"{self.name}.scan")
        return super().scan_all_sites()


class RecordingRegistry(JobRegistry):
    def __init__(self, calls, fail_schedule=(), **kwargs):
        super().__init__(**kwargs)
        self._log = calls
        self.fail_schedule = set(fail_schedule)

    def schedule(self, name):
        self._log.append(f"schedule:{name}")
        if name in self.fail_schedule:
            raise RuntimeError(f"cannot schedule {name}")
        return super().schedule(name)


@pytest.fixture()
def calls():
    return []


@pytest.fixture()
def build(calls, fake_scheduler, clock):
    built = []

    def _build(fail_schedule=(), daily_fails=False, proxy_fails=False, new_member_fails=(), context=None):
        registry = RecordingRegistry(
            calls, fail_schedule=fail_schedule,
            scheduler=fake_scheduler, clock=clock, timeout=5,
        )
        bootstrap = ServiceBootstrap(
            registry,
            RecordingScanner(DAILY_SCANNER_JOB, calls, fail=daily_fails),
            RecordingScanner(PROXY_SCANNER_JOB, calls, fail=proxy_fails),
            RecordingNewMember(calls, fail=new_member_fails),
            context=context,
        )
        built.append(bootstrap)
        return bootstrap

    yield _build

    for bootstrap in built:
        bootstrap.stop()


def test_start_runs_steps_in_order(build, calls):
    bootstrap = build()

    report = bootstrap.start()

    assert list(report) == STEP_NAMES
    assert all(outcome == "ok" for outcome in report.values())
    assert calls == [
        f"schedule:{DAILY_SCANNER_JOB}",
        f"schedule:{PROXY_SCANNER_JOB}",
        f"{DAILY_SCANNER_JOB}.scan",
        "validate",
        "seed",
        f"schedule:{NEW_MEMBER_REFRESH_JOB}",
    ]


def test_jobs_registered_at_construction(build):
    bootstrap = build()
    names = {job.name for job in bootstrap.registry.jobs()}
    assert names == {DAILY_SCANNER_JOB, PROXY_SCANNER_JOB, NEW_MEMBER_REFRESH_JOB}
    assert bootstrap.registry.get(NEW_MEMBER_REFRESH_JOB).interval == NEW_MEMBER_REFRESH_INTERVAL
    assert NEW_MEMBER_REFRESH_INTERVAL.total_seconds() * 1000 == 86_400_000


def test_duplicate_job_fails_fast(fake_scheduler, clock):
    registry = JobRegistry(scheduler=fake_scheduler, clock=clock)
    registry.register(ScanJob(PROXY_SCANNER_JOB, DAY, lambda: None))
    try:
        with pytest.raises(DuplicateJobError):
            ServiceBootstrap(
                registry,
                StubScanner(DAILY_SCANNER_JOB),
                StubScanner(PROXY_SCANNER_JOB),
                StubNewMemberScanner(),
            )
    finally:
        registry.shutdown()


def test_primary_scanner_failing_to_start_does_not_stop_the_proxy(build, calls, fake_scheduler):
    bootstrap = build(fail_schedule={DAILY_SCANNER_JOB})

    report = bootstrap.start()

    assert report["start-daily-scanner"].startswith("failed")
    assert report["start-proxy-scanner"] == "ok"
    assert PROXY_SCANNER_JOB in fake_scheduler.jobs
    assert DAILY_SCANNER_JOB not in fake_scheduler.jobs
    # later steps still attempted
    assert calls[-4:] == [f"{DAILY_SCANNER_JOB}.scan", "validate", "seed", f"schedule:{NEW_MEMBER_REFRESH_JOB}"]


def test_proxy_scanner_failing_to_start_does_not_stop_the_primary(build, fake_scheduler):
    bootstrap = build(fail_schedule={PROXY_SCANNER_JOB})

    report = bootstrap.start()

    assert report["start-daily-scanner"] == "ok"
    assert report["start-proxy-scanner"].startswith("failed")
    assert DAILY_SCANNER_JOB in fake_scheduler.jobs


def test_failed_initial_scan_still_validates_and_seeds(build, calls):
    bootstrap = build(daily_fails=True)

    report = bootstrap.start()

    assert report["initial-scan"].startswith("failed")
    assert "daily-scanner is down" in report["initial-scan"]
    assert report["validate-new-member-offers"] == "ok"
    assert report["seed-standard-offers"] == "ok"
    assert report["schedule-new-member-refresh"] == "ok"
    assert calls.count("validate") == 1
    assert calls.count("seed") == 1


@pytest.mark.parametrize("failing", ["validate", "seed"])
def test_new_member_step_failures_are_isolated(build, calls, failing):
    bootstrap = build(new_member_fails={failing})

    report = bootstrap.start()

    assert calls.index("validate") < calls.index("seed")
    assert sum(1 for outcome in report.values() if outcome != "ok") == 1
    assert report["schedule-new-member-refresh"] == "ok"


def test_start_never_raises(build):
    bootstrap = build(
        fail_schedule={DAILY_SCANNER_JOB, PROXY_SCANNER_JOB, NEW_MEMBER_REFRESH_JOB},
        daily_fails=True,
        new_member_fails={"validate", "seed"},
    )

    report = bootstrap.start()
    assert list(report) == STEP_NAMES
    assert all(outcome.startswith("failed") for outcome in report.values())


def test_start_survives_broken_step_list(build, monkeypatch):
    bootstrap = build()

    def broken():
        raise RuntimeError("no steps")

    monkeypatch.setattr(bootstrap, "steps", broken)
    assert bootstrap.start() == {}


def test_start_runs_only_once(build, calls):
    bootstrap = build()

    bootstrap.start()
    first = list(calls)
    bootstrap.start()

    assert calls == first
    assert calls.count(f"{DAILY_SCANNER_JOB}.scan") == 1


def test_only_one_bootstrap_per_process(build, fake_scheduler, clock):
    first = build()
    first.start()

    other_calls = []
    registry = JobRegistry(scheduler=fake_scheduler, clock=clock, timeout=5)
    other = ServiceBootstrap(
        registry,
        RecordingScanner(DAILY_SCANNER_JOB, other_calls),
        RecordingScanner(PROXY_SCANNER_JOB, other_calls),
        RecordingNewMember(other_calls),
    )
    try:
        assert other.start() == {}
        assert other_calls == []
        assert not other.started

        first.stop()
        assert other.start()["initial-scan"] == "ok"
    finally:
        other.stop()


def test_new_member_refresh_fires_every_24h_not_at_start(build, calls, fake_scheduler, clock):
    bootstrap = build()
    started_at = clock()
    bootstrap.start()
    assert "refresh" not in calls

    fake_scheduler.advance(DAY - timedelta(minutes=1))
    assert calls.count("refresh") == 0

    fake_scheduler.advance(timedelta(minutes=1))
    assert calls.count("refresh") == 1

    fake_scheduler.advance(DAY)
    assert calls.count("refresh") == 2
    assert fake_scheduler.fired_for(NEW_MEMBER_REFRESH_JOB) == [started_at + DAY, started_at + 2 * DAY]


def test_entry_points_run_inside_context(build, calls):
    entered = []

    @contextmanager
    def context():
        entered.append("enter")
        yield
        entered.append("exit")

    bootstrap = build(context=context)
    bootstrap.start()

    # initial scan, validation, seeding
    assert entered.count("enter") == 3
    assert entered.count("exit") == 3


def test_stop_releases_process_slot(build):
    bootstrap = build()
    bootstrap.start()
    bootstrap.stop()
    assert bootstrap_module._active is None
