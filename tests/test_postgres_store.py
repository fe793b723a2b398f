from __future__ import annotations

import uuid
from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient

from app.workflow.factory import build_workflow
from app.workflow.repository import PostgresEntityStore
from app.workflow.statuses import EntityKind, MilestoneStatus
from db import as_uuid
from deps.workflow import workflow_dep
from main import create_app
from services.audit_log import PostgresAuditSink
from tests.conftest import RecordingSender, _auth_headers


class _FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.conn.executed.append((sql, params))
        if self.conn.reject_all:
            # what postgres answers for "'not-a-uuid'::uuid"
            raise RuntimeError("invalid input syntax for type uuid")

    def fetchone(self):
        return None

    def fetchall(self):
        return []


class _FakeConn:
    def __init__(self, reject_all=False):
        self.reject_all = reject_all
        self.executed = []

    def cursor(self, cursor_factory=None):
        return _FakeCursor(self)


def _factory(conn):
    @contextmanager
    def _conn():
        yield conn

    return _conn


def test_as_uuid():
    raw = uuid.uuid4()
    assert as_uuid(raw) == str(raw)
    assert as_uuid(str(raw).upper()) == str(raw)
    assert as_uuid("not-a-uuid") is None
    assert as_uuid("") is None
    assert as_uuid(None) is None


@pytest.mark.parametrize("bad_id", ["not-a-uuid", "missing", "1234", ""])
def test_malformed_ids_never_reach_the_database(bad_id):
    conn = _FakeConn(reject_all=True)
    store = PostgresEntityStore(conn_factory=_factory(conn))
    sink = PostgresAuditSink(conn_factory=_factory(conn))

    assert store.get_status(EntityKind.QUOTE, bad_id) is None
    assert store.update_status(
        EntityKind.INVOICE, bad_id, expected_status="sent", new_status="viewed", changes={}
    ) is False
    assert store.get_quote(bad_id) is None
    assert store.get_invoice(bad_id) is None
    assert store.get_invoice_for_quote(bad_id) is None
    assert store.list_milestones(bad_id) == []
    assert store.get_milestone(bad_id) is None
    assert store.set_milestone_status(bad_id, MilestoneStatus.PAID) is None
    assert sink.history(EntityKind.QUOTE, bad_id) == []

    assert conn.executed == []


def test_well_formed_ids_are_queried_in_canonical_form():
    conn = _FakeConn()
    store = PostgresEntityStore(conn_factory=_factory(conn))
    raw = uuid.uuid4()

    assert store.get_quote(str(raw).upper()) is None
    assert len(conn.executed) == 1
    assert conn.executed[0][1] == (str(raw),)


def test_malformed_path_ids_are_404_on_the_postgres_store(admin_token):
    conn = _FakeConn(reject_all=True)
    wf = build_workflow(
        store=PostgresEntityStore(conn_factory=_factory(conn)),
        audit_sink=PostgresAuditSink(conn_factory=_factory(conn)),
        sender=RecordingSender(),
    )
    app = create_app()
    app.dependency_overrides[workflow_dep] = lambda: wf
    client = TestClient(app, raise_server_exceptions=False)
    headers = _auth_headers(admin_token)

    assert client.get("/v1/quotes/not-a-uuid", headers=headers).status_code == 404
    assert client.get("/v1/invoices/not-a-uuid/history", headers=headers).status_code == 404

    r = client.post("/v1/quotes/not-a-uuid/status", json={"status": "under_review"}, headers=headers)
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "ENTITY_NOT_FOUND"

    r = client.post("/v1/invoices/not-a-uuid/status", json={"status": "viewed"}, headers=headers)
    assert r.status_code == 404

    assert conn.executed == []
