from __future__ import annotations

import logging

import pytest

from offerwatch.config import ConfigError
from offerwatch.errors import ApiError, error_message, error_status


class UpstreamError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


def _add_failing_routes(app):
    @app.get("/api/boom")
    def boom():
        raise RuntimeError("boom")

    @app.get("/api/missing")
    def missing():
        raise ApiError("not found", 404)

    @app.get("/api/upstream")
    def upstream():
        raise UpstreamError("bad gateway upstream", 502)

    @app.get("/api/silent")
    def silent():
        raise RuntimeError()

    return app


@pytest.fixture()
def failing_client(make_app):
    return _add_failing_routes(make_app()).test_client()


def test_api_error_sets_status_and_message(failing_client):
    resp = failing_client.get("/api/missing")
    assert resp.status_code == 404
    assert resp.get_json() == {"message": "not found"}


def test_unhandled_error_becomes_500_json(failing_client, caplog):
    caplog.set_level(logging.ERROR, logger="offerwatch.errors")

    resp = failing_client.get("/api/boom")

    assert resp.status_code == 500
    assert resp.get_json() == {"message": "boom"}
    records = [r for r in caplog.records if r.name == "offerwatch.errors"]
    assert len(records) == 1
    assert records[0].exc_info[0] is RuntimeError


def test_error_without_message_uses_default(failing_client):
    resp = failing_client.get("/api/silent")
    assert resp.status_code == 500
    assert resp.get_json() == {"message": "Internal Server Error"}


def test_status_code_attribute_is_honoured(failing_client):
    resp = failing_client.get("/api/upstream")
    assert resp.status_code == 502
    assert resp.get_json() == {"message": "bad gateway upstream"}


def test_unknown_api_route_is_json_404(client):
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.is_json
    assert "message" in resp.get_json()


def test_client_errors_are_not_escalated(failing_client, caplog):
    caplog.set_level(logging.ERROR, logger="offerwatch.errors")
    failing_client.get("/api/missing")
    assert not [r for r in caplog.records if r.name == "offerwatch.errors"]


def test_escalation_hook_receives_error_after_response(make_app):
    seen = []
    app = _add_failing_routes(make_app(ERROR_ESCALATION_HOOK=lambda e, status: seen.append((e, status))))

    resp = app.test_client().get("/api/boom")

    assert resp.status_code == 500
    assert len(seen) == 1
    assert isinstance(seen[0][0], RuntimeError)
    assert seen[0][1] == 500


def test_failing_hook_does_not_change_the_response(make_app):
    def hook(e, status):
        raise ValueError("supervisor unreachable")

    app = _add_failing_routes(make_app(ERROR_ESCALATION_HOOK=hook))

    resp = app.test_client().get("/api/missing")

    assert resp.status_code == 404
    assert resp.get_json() == {"message": "not found"}


def test_escalation_none_skips_logging(make_app, caplog):
    caplog.set_level(logging.ERROR, logger="offerwatch.errors")
    app = _add_failing_routes(make_app(ERROR_ESCALATION="none"))

    resp = app.test_client().get("/api/boom")

    assert resp.status_code == 500
    assert not [r for r in caplog.records if r.name == "offerwatch.errors"]


def test_invalid_escalation_policy_is_rejected(make_app):
    with pytest.raises(ConfigError):
        make_app(ERROR_ESCALATION="page-someone")


def test_oversized_body_is_rejected_as_json(make_app):
    app = make_app(MAX_CONTENT_LENGTH=64)

    resp = app.test_client().post("/api/validate-url", json={"url": "https://example.com/" + "a" * 200})

    assert resp.status_code == 413
    assert "message" in resp.get_json()


@pytest.mark.parametrize(
    "error, status",
    [
        (ApiError("conflict", 409), 409),
        (UpstreamError("x", 503), 503),
        (UpstreamError("x", 200), 500),
        (ValueError("x"), 500),
    ],
)
def test_error_status(error, status):
    assert error_status(error) == status


def test_error_message_prefers_message_attribute():
    assert error_message(ApiError("custom")) == "custom"
    assert error_message(KeyError("k")) == "'k'"
