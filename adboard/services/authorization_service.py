"""Module/action authorization.

``check`` answers "may this subject perform ``action`` on ``module``" with a
:class:`~adboard.domain.access.Decision`. It never raises for missing data and
never answers allowed without having read the store: unregistered or inactive
permissions deny with ``CONFIGURATION_ERROR``, missing grants with
``MISSING_GRANT`` and any store failure with ``UNAVAILABLE``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from adboard.domain.access import Decision, DecisionReason, Subject
from adboard.domain.admin_policy import is_privileged
from adboard.domain.permissions import PermissionKey, PermissionKeyError, coerce_permission_key
from adboard.infra import db
from adboard.infra.audit import DecisionLog, build_decision_log, emit_decision
from adboard.services.errors import StoreUnavailableError
from adboard.services.permission_catalog import PermissionCatalog
from adboard.services.role_grant_store import RoleGrantStore

UNAVAILABLE_MESSAGE = "authorization store unavailable, retry later"
NOT_CONFIGURED_MESSAGE = "access to this operation is not configured"


class AuthorizationEngine:
    def __init__(
        self,
        *,
        catalog: PermissionCatalog | None = None,
        grants: RoleGrantStore | None = None,
        decision_log: DecisionLog | None = None,
    ) -> None:
        self.catalog = catalog or PermissionCatalog()
        self.grants = grants or RoleGrantStore()
        self.decision_log: DecisionLog | None = decision_log if decision_log is not None else build_decision_log()

    def _session(self) -> Session:
        return db.open_session()

    def _emit(self, subject: Subject, decision: Decision) -> Decision:
        if decision.reason != DecisionReason.GRANTED:
            emit_decision(self.decision_log, subject, decision)
        return decision

    def check(self, subject: Subject, module: str, action: str) -> Decision:
        if is_privileged(subject.role):
            return self._emit(subject, Decision.allow(DecisionReason.ADMIN_BYPASS, module=module, action=action))

        try:
            key = PermissionKey.of(module, action)
        except PermissionKeyError:
            return self._emit(
                subject,
                Decision.deny(
                    DecisionReason.CONFIGURATION_ERROR,
                    NOT_CONFIGURED_MESSAGE,
                    module=module,
                    action=action,
                ),
            )

        try:
            with self._session() as session:
                decision = self._check_key(session, subject, key)
        except SQLAlchemyError:
            decision = Decision.deny(
                DecisionReason.UNAVAILABLE,
                UNAVAILABLE_MESSAGE,
                module=key.module,
                action=key.action,
            )
        return self._emit(subject, decision)

    def _check_key(self, session: Session, subject: Subject, key: PermissionKey) -> Decision:
        permission = self.catalog.lookup(session, key.module, key.action)
        if permission is None or not permission.is_active:
            return Decision.deny(
                DecisionReason.CONFIGURATION_ERROR,
                NOT_CONFIGURED_MESSAGE,
                module=key.module,
                action=key.action,
            )
        if self.grants.has_grant(session, subject.role_id, permission.id):
            return Decision.allow(DecisionReason.GRANTED, module=key.module, action=key.action)
        return Decision.deny(
            DecisionReason.MISSING_GRANT,
            f"You don't have permission to {key.action} {key.module}.",
            module=key.module,
            action=key.action,
        )

    def check_all(self, subject: Subject, keys: Iterable[Any]) -> Decision:
        resolved = list(keys)
        if not resolved:
            raise ValueError("check_all requires at least one permission key")
        decisions: list[Decision] = []
        for item in resolved:
            module, action = self._split(item)
            decision = self.check(subject, module, action)
            if not decision.allowed:
                return decision
            decisions.append(decision)
        return decisions[-1]

    def check_any(self, subject: Subject, keys: Iterable[Any]) -> Decision:
        resolved = list(keys)
        if not resolved:
            raise ValueError("check_any requires at least one permission key")
        denials: list[Decision] = []
        for item in resolved:
            module, action = self._split(item)
            decision = self.check(subject, module, action)
            if decision.allowed:
                return decision
            denials.append(decision)
        return self._most_specific(denials)

    def _split(self, item: Any) -> tuple[str, str]:
        try:
            key = coerce_permission_key(item)
        except PermissionKeyError:
            return str(item), ""
        return key.module, key.action

    def _most_specific(self, denials: list[Decision]) -> Decision:
        # Outage outranks a config gap, which outranks a plain missing grant.
        priority = {
            DecisionReason.UNAVAILABLE: 0,
            DecisionReason.CONFIGURATION_ERROR: 1,
            DecisionReason.MISSING_GRANT: 2,
        }
        return sorted(denials, key=lambda item: priority.get(item.reason, 3))[0]

    def check_module_access(self, subject: Subject, module: str) -> Decision:
        if is_privileged(subject.role):
            return self._emit(subject, Decision.allow(DecisionReason.ADMIN_BYPASS, module=module))
        try:
            with self._session() as session:
                catalog_actions = self.catalog.list_active(session, module)
                granted = self.grants.list_granted_actions(session, subject.role_id, module)
        except SQLAlchemyError:
            return self._emit(
                subject,
                Decision.deny(DecisionReason.UNAVAILABLE, UNAVAILABLE_MESSAGE, module=module),
            )
        if not catalog_actions:
            return self._emit(
                subject,
                Decision.deny(DecisionReason.CONFIGURATION_ERROR, NOT_CONFIGURED_MESSAGE, module=module),
            )
        if granted:
            return self._emit(subject, Decision.allow(DecisionReason.GRANTED, module=module))
        return self._emit(
            subject,
            Decision.deny(
                DecisionReason.MISSING_GRANT,
                f"You don't have any permissions for the {module} module.",
                module=module,
            ),
        )

    def effective_permissions(self, subject: Subject) -> list[PermissionKey]:
        try:
            with self._session() as session:
                if is_privileged(subject.role):
                    permissions = self.catalog.list_active(session)
                else:
                    permissions = self.grants.list_grants(session, subject.role_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(UNAVAILABLE_MESSAGE) from exc
        return sorted({PermissionKey.of(item.module, item.action) for item in permissions})

    def available_actions(self, subject: Subject, module: str) -> list[str]:
        keys = self.effective_permissions(subject)
        module_key = module.strip().lower()
        return [item.action for item in keys if item.module == module_key]
