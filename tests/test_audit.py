from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine, select

from adboard.domain.access import Decision, DecisionReason, Subject
from adboard.domain.models import AuditLog
from adboard.infra import db
from adboard.infra.audit import (
    AuditTableDecisionLog,
    CompositeDecisionLog,
    StructlogDecisionLog,
    build_decision_log,
    emit_decision,
)
from adboard.infra.auth import InvalidSubjectError, create_access_token, decode_access_token, subject_from_claims


class RecordingDecisionLog:
    def __init__(self) -> None:
        self.reasons: list[DecisionReason] = []

    def record(self, subject: Subject, decision: Decision, *, resource_type: str | None = None) -> None:
        self.reasons.append(decision.reason)


class BrokenDecisionLog:
    def record(self, subject: Subject, decision: Decision, *, resource_type: str | None = None) -> None:
        raise RuntimeError("sink down")


@pytest.fixture()
def audit_engine(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Engine:
    db_path = tmp_path / "audit_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    return test_engine


SUBJECT = Subject(user_id="u1", role_id="r1", role_name="advertiser", role_level=1)
DENIAL = Decision.deny(DecisionReason.MISSING_GRANT, "no", module="campaigns", action="update")


def test_audit_table_sink_persists_decision(audit_engine: Engine) -> None:
    AuditTableDecisionLog().record(SUBJECT, DENIAL, resource_type="campaigns")

    with Session(audit_engine) as session:
        rows = session.exec(select(AuditLog)).all()

    assert len(rows) == 1
    assert rows[0].actor_id == "u1"
    assert rows[0].action == "campaigns.update"
    assert rows[0].outcome == "denied"
    assert rows[0].reason == "MISSING_GRANT"
    assert rows[0].detail["role_name"] == "advertiser"


def test_composite_sink_keeps_going_after_failure(audit_engine: Engine) -> None:
    recorder = RecordingDecisionLog()
    composite = CompositeDecisionLog([BrokenDecisionLog(), recorder])

    composite.record(SUBJECT, DENIAL)

    assert recorder.reasons == [DecisionReason.MISSING_GRANT]


def test_emit_decision_tolerates_missing_and_broken_sinks() -> None:
    emit_decision(None, SUBJECT, DENIAL)
    emit_decision(BrokenDecisionLog(), SUBJECT, DENIAL)


def test_build_decision_log_selects_sinks() -> None:
    assert isinstance(build_decision_log(persist=False), StructlogDecisionLog)
    assert isinstance(build_decision_log(persist=True), CompositeDecisionLog)


def test_token_round_trip_yields_subject() -> None:
    token = create_access_token(SUBJECT)
    assert subject_from_claims(decode_access_token(token)) == SUBJECT


def test_claims_without_role_are_rejected() -> None:
    with pytest.raises(InvalidSubjectError):
        subject_from_claims({"sub": "u1", "role_name": "advertiser", "role_level": 1})
    with pytest.raises(InvalidSubjectError):
        subject_from_claims({"sub": "u1", "role_id": "r1", "role_name": "advertiser", "role_level": True})


def test_audit_table_sink_skips_unavailable_decisions(audit_engine: Engine) -> None:
    outage = Decision.deny(DecisionReason.UNAVAILABLE, "down", module="campaigns", action="read")

    AuditTableDecisionLog().record(SUBJECT, outage)

    with Session(audit_engine) as session:
        assert session.exec(select(AuditLog)).all() == []
