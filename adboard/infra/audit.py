from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any, Protocol

from sqlmodel import Session

from adboard.domain.access import Decision, DecisionReason, Subject
from adboard.domain.models import AuditLog
from adboard.infra import db
from adboard.infra.logging import get_logger

DECISION_EVENT = "authorization.decision"
AUDIT_DECISIONS = os.getenv("AUDIT_DECISIONS", "0").strip().lower() in {"1", "true", "yes"}

logger = get_logger(__name__)


def write_audit_log(
    *,
    actor_id: str | None,
    action: str,
    resource: str,
    outcome: str,
    reason: str | None = None,
    detail: dict[str, Any] | None = None,
) -> None:
    log = AuditLog(
        actor_id=actor_id,
        action=action,
        resource=resource,
        outcome=outcome,
        reason=reason,
        detail=detail or {},
    )
    with Session(db.get_engine()) as session:
        session.add(log)
        session.commit()


def decision_fields(
    subject: Subject,
    decision: Decision,
    *,
    resource_type: str | None = None,
) -> dict[str, Any]:
    return {
        "user_id": subject.user_id,
        "role_id": subject.role_id,
        "role_name": subject.role_name,
        "module": decision.module,
        "action": decision.action,
        "resource_type": resource_type,
        "allowed": decision.allowed,
        "reason": decision.reason.value,
    }


class DecisionLog(Protocol):
    def record(
        self,
        subject: Subject,
        decision: Decision,
        *,
        resource_type: str | None = None,
    ) -> None: ...


class StructlogDecisionLog:
    def record(
        self,
        subject: Subject,
        decision: Decision,
        *,
        resource_type: str | None = None,
    ) -> None:
        fields = decision_fields(subject, decision, resource_type=resource_type)
        if decision.allowed:
            logger.info(DECISION_EVENT, **fields)
        else:
            logger.warning(DECISION_EVENT, detail=decision.message, **fields)


class AuditTableDecisionLog:
    def record(
        self,
        subject: Subject,
        decision: Decision,
        *,
        resource_type: str | None = None,
    ) -> None:
        # UNAVAILABLE means the store is down; the structlog sink still records it.
        if decision.reason == DecisionReason.UNAVAILABLE:
            return
        write_audit_log(
            actor_id=subject.user_id,
            action=f"{decision.module or '*'}.{decision.action or '*'}",
            resource=resource_type or decision.module or "*",
            outcome="allowed" if decision.allowed else "denied",
            reason=decision.reason.value,
            detail=decision_fields(subject, decision, resource_type=resource_type),
        )


class CompositeDecisionLog:
    def __init__(self, sinks: Sequence[DecisionLog]) -> None:
        self._sinks = list(sinks)

    def record(
        self,
        subject: Subject,
        decision: Decision,
        *,
        resource_type: str | None = None,
    ) -> None:
        for sink in self._sinks:
            try:
                sink.record(subject, decision, resource_type=resource_type)
            except Exception:
                logger.exception("decision log sink failed", sink=type(sink).__name__)


def emit_decision(
    sink: DecisionLog | None,
    subject: Subject,
    decision: Decision,
    *,
    resource_type: str | None = None,
) -> None:
    """Hand a decision to the audit trail without ever affecting the decision."""
    if sink is None:
        return
    try:
        sink.record(subject, decision, resource_type=resource_type)
    except Exception:
        # Audit must not block the decision path.
        return


def build_decision_log(*, persist: bool | None = None) -> DecisionLog:
    """Structlog always; the audit table too when ``AUDIT_DECISIONS`` is on."""
    if not (AUDIT_DECISIONS if persist is None else persist):
        return StructlogDecisionLog()
    return CompositeDecisionLog([StructlogDecisionLog(), AuditTableDecisionLog()])
