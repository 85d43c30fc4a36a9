from __future__ import annotations

from adboard.domain.access import Decision, DecisionReason, Subject
from adboard.domain.admin_policy import is_privileged
from adboard.infra.audit import DecisionLog, build_decision_log, emit_decision

NOT_OWNER_MESSAGE = "Access denied. You can only modify your own data."


class OwnershipGuard:
    """Second gate for update/delete on a single owned row.

    Runs in addition to the module/action check; holding the module grant
    does not make a caller the owner.
    """

    def __init__(self, *, decision_log: DecisionLog | None = None) -> None:
        self.decision_log: DecisionLog | None = decision_log if decision_log is not None else build_decision_log()

    def enforce_ownership(
        self,
        subject: Subject,
        resource_owner_id: str | None,
        *,
        resource_type: str | None = None,
    ) -> Decision:
        if is_privileged(subject.role):
            decision = Decision.allow(DecisionReason.ADMIN_BYPASS, module=resource_type)
            emit_decision(self.decision_log, subject, decision, resource_type=resource_type)
            return decision
        if resource_owner_id is not None and resource_owner_id == subject.user_id:
            return Decision.allow(DecisionReason.OWNER, module=resource_type)
        decision = Decision.deny(DecisionReason.NOT_OWNER, NOT_OWNER_MESSAGE, module=resource_type)
        emit_decision(self.decision_log, subject, decision, resource_type=resource_type)
        return decision
