from __future__ import annotations

import logging
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from tokenvault.core.config import get_settings
from tokenvault.core.logging_config import RequestIdFilter
from tokenvault.core.tokens import Principal, TokenSigner, sha256_hex
from tokenvault.db.session import get_session
from tokenvault.main import app
from tokenvault.models.session_record import SessionRecord

PASSWORD = "Str0ng!pass"


@pytest.fixture
def client(engine, settings):
    def _session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def _register(client, email="ada@example.com"):
    res = client.post(
        "/auth/register",
        json={"email": email, "password": PASSWORD, "confirm_password": PASSWORD, "name": "Ada"},
        headers={"user-agent": "pytest-agent"},
    )
    assert res.status_code == 201, res.text
    return res.json()


def test_register_issues_pair_and_stores_digest(client, engine):
    body = _register(client, email="  Ada@Example.com ")

    assert body["user"]["email"] == "ada@example.com"
    assert body["token_type"] == "bearer"
    with Session(engine) as s:
        rows = s.exec(select(SessionRecord)).all()
    assert [r.token_digest for r in rows] == [sha256_hex(body["refresh_token"])]
    assert rows[0].origin_agent == "pytest-agent"


def test_register_rejects_duplicates_and_weak_passwords(client):
    _register(client)

    dup = client.post(
        "/auth/register",
        json={"email": "ada@example.com", "password": PASSWORD, "confirm_password": PASSWORD},
    )
    assert dup.status_code == 409

    weak = client.post(
        "/auth/register",
        json={"email": "bob@example.com", "password": "alllowercase1!", "confirm_password": "alllowercase1!"},
    )
    assert weak.status_code == 422

    mismatch = client.post(
        "/auth/register",
        json={"email": "bob@example.com", "password": PASSWORD, "confirm_password": PASSWORD + "x"},
    )
    assert mismatch.status_code == 422


def test_login(client):
    _register(client)

    ok = client.post("/auth/login", json={"email": "ada@example.com", "password": PASSWORD})
    assert ok.status_code == 200
    assert ok.json()["refresh_token"]

    bad = client.post("/auth/login", json={"email": "ada@example.com", "password": "Wrong!pass1"})
    assert bad.status_code == 401
    unknown = client.post("/auth/login", json={"email": "nobody@example.com", "password": PASSWORD})
    assert unknown.status_code == 401
    assert bad.json() == unknown.json()


def test_refresh_rotation_and_generic_failures(client):
    first = _register(client)

    rotated = client.post("/auth/refresh", json={"refresh_token": first["refresh_token"]})
    assert rotated.status_code == 200
    assert rotated.json()["refresh_token"] != first["refresh_token"]

    replay = client.post("/auth/refresh", json={"refresh_token": first["refresh_token"]})
    garbage = client.post("/auth/refresh", json={"refresh_token": "garbage"})

    for res in (replay, garbage):
        assert res.status_code == 401
        assert res.json() == {"detail": "Unauthorized"}
        assert res.headers["www-authenticate"] == "Bearer"

    again = client.post("/auth/refresh", json={"refresh_token": rotated.json()["refresh_token"]})
    assert again.status_code == 200


def test_logout_response_does_not_leak_token_validity(client):
    body = _register(client)

    first = client.post("/auth/logout", json={"refresh_token": body["refresh_token"]})
    second = client.post("/auth/logout", json={"refresh_token": body["refresh_token"]})
    unknown = client.post("/auth/logout", json={"refresh_token": "never-issued"})

    assert first.status_code == second.status_code == unknown.status_code == 200
    assert first.json() == second.json() == unknown.json()

    after = client.post("/auth/refresh", json={"refresh_token": body["refresh_token"]})
    assert after.status_code == 401


def test_logout_all_and_profile_require_access_token(client):
    assert client.post("/auth/logout-all").status_code == 401
    assert client.get("/users/me").status_code == 401

    body = _register(client)
    login = client.post("/auth/login", json={"email": "ada@example.com", "password": PASSWORD}).json()
    headers = {"Authorization": f"Bearer {login['access_token']}"}

    me = client.get("/users/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "ada@example.com"

    res = client.post("/auth/logout-all", headers=headers)
    assert res.status_code == 200
    assert res.json()["revoked"] == 2

    for token in (body["refresh_token"], login["refresh_token"]):
        assert client.post("/auth/refresh", json={"refresh_token": token}).status_code == 401

    none_left = client.post("/auth/logout-all", headers=headers)
    assert none_left.json() == {"message": "No active sessions to log out from.", "revoked": 0}


def test_refresh_token_is_not_an_access_token(client):
    body = _register(client)

    res = client.get("/users/me", headers={"Authorization": f"Bearer {body['refresh_token']}"})
    assert res.status_code == 401


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_unknown_refresh_token_revokes_the_whole_family(client, engine, settings):
    body = _register(client)
    _register(client, email="bob@example.com")
    subject = UUID(body["user"]["id"])

    # verifies, but was never stored
    forged, _ = TokenSigner.from_settings(settings).sign_refresh(Principal(subject, "ada@example.com"))
    res = client.post("/auth/refresh", json={"refresh_token": forged})
    assert res.status_code == 401
    assert res.json() == {"detail": "Unauthorized"}

    with Session(engine) as s:
        rows = s.exec(select(SessionRecord)).all()
    assert not [r for r in rows if r.subject == subject and r.is_active()]
    assert [r for r in rows if r.subject != subject and r.is_active()]

    again = client.post("/auth/refresh", json={"refresh_token": body["refresh_token"]})
    assert again.status_code == 401
    assert again.json() == {"detail": "Unauthorized"}


class _Collect(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_request_id_is_echoed_and_tagged_on_logs(client):
    handler = _Collect()
    handler.addFilter(RequestIdFilter())
    main_log = logging.getLogger("tokenvault.main")
    main_log.addHandler(handler)
    try:
        res = client.post(
            "/auth/refresh",
            json={"refresh_token": "garbage"},
            headers={"x-request-id": "abc"},
        )
    finally:
        main_log.removeHandler(handler)

    assert res.status_code == 401
    assert res.headers["x-request-id"] == "abc"
    assert handler.records
    assert {r.request_id for r in handler.records} == {"abc"}


def test_request_id_is_generated_when_absent(client):
    first = client.get("/health").headers["x-request-id"]
    second = client.get("/health").headers["x-request-id"]
    assert len(first) == 32
    assert first != second


def test_log_records_outside_a_request_get_a_placeholder():
    record = logging.LogRecord("tokenvault", logging.INFO, __file__, 1, "msg", None, None)
    assert RequestIdFilter().filter(record) is True
    assert record.request_id == "-"
