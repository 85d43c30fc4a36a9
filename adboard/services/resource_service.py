from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col

from adboard.domain.access import Decision, Subject
from adboard.domain.models import OwnedRecord, OwnedResourceCreate, OwnedResourceUpdate, now_utc
from adboard.domain.permissions import ACTION_CREATE, ACTION_DELETE, ACTION_READ, ACTION_UPDATE
from adboard.infra import db
from adboard.services.authorization_service import UNAVAILABLE_MESSAGE, AuthorizationEngine
from adboard.services.errors import AccessDeniedError, ConflictError, NotFoundError, StoreUnavailableError
from adboard.services.ownership_service import OwnershipGuard
from adboard.services.row_scope_service import RowScopeFilter, normalize_resource_type, resolve_owned_model


class ResourceService:
    """CRUD for owned resources (campaigns, cards, reports, ...).

    Every path goes through the module/action check first. Reads are narrowed
    by the row scope; updates and deletes additionally pass the ownership
    guard against the stored owner.
    """

    def __init__(
        self,
        *,
        engine: AuthorizationEngine | None = None,
        scope_filter: RowScopeFilter | None = None,
        guard: OwnershipGuard | None = None,
    ) -> None:
        self.engine = engine or AuthorizationEngine()
        self.scope_filter = scope_filter or RowScopeFilter()
        self.guard = guard or OwnershipGuard()

    def _session(self) -> Session:
        return db.open_session()

    def _require(self, subject: Subject, resource_type: str, action: str) -> Decision:
        decision = self.engine.check(subject, resource_type, action)
        if not decision.allowed:
            raise AccessDeniedError(decision)
        return decision

    def _get_scoped(self, session: Session, subject: Subject, resource_type: str, resource_id: str) -> OwnedRecord:
        model = resolve_owned_model(resource_type)
        statement = self.scope_filter.scoped_select(subject, resource_type).where(col(model.id) == resource_id)
        row = session.exec(statement).first()
        if row is None:
            raise NotFoundError(f"{resource_type} not found")
        return row

    def create_resource(self, subject: Subject, resource_type: str, payload: OwnedResourceCreate) -> OwnedRecord:
        resource_type = normalize_resource_type(resource_type)
        model = resolve_owned_model(resource_type)
        self._require(subject, resource_type, ACTION_CREATE)
        try:
            with self._session() as session:
                row = model(owner_id=subject.user_id, name=payload.name, details=dict(payload.details))
                session.add(row)
                session.commit()
                session.refresh(row)
                return row
        except IntegrityError as exc:
            raise ConflictError(f"{resource_type} write rejected by store constraint") from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(UNAVAILABLE_MESSAGE) from exc

    def list_resources(
        self,
        subject: Subject,
        resource_type: str,
        *,
        name_contains: str | None = None,
        offset: int = 0,
        limit: int = 100,
    ) -> list[OwnedRecord]:
        resource_type = normalize_resource_type(resource_type)
        model = resolve_owned_model(resource_type)
        self._require(subject, resource_type, ACTION_READ)
        statement = self.scope_filter.scoped_select(subject, resource_type)
        if name_contains:
            statement = statement.where(col(model.name).contains(name_contains))
        statement = statement.order_by(col(model.created_at), col(model.id)).offset(offset).limit(limit)
        try:
            with self._session() as session:
                return list(session.exec(statement).all())
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(UNAVAILABLE_MESSAGE) from exc

    def get_resource(self, subject: Subject, resource_type: str, resource_id: str) -> OwnedRecord:
        resource_type = normalize_resource_type(resource_type)
        resolve_owned_model(resource_type)
        self._require(subject, resource_type, ACTION_READ)
        try:
            with self._session() as session:
                return self._get_scoped(session, subject, resource_type, resource_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(UNAVAILABLE_MESSAGE) from exc

    def _load_for_mutation(self, session: Session, subject: Subject, resource_type: str, resource_id: str) -> OwnedRecord:
        model = resolve_owned_model(resource_type)
        row = session.get(model, resource_id)
        if row is None:
            raise NotFoundError(f"{resource_type} not found")
        decision = self.guard.enforce_ownership(subject, row.owner_id, resource_type=resource_type)
        if not decision.allowed:
            raise AccessDeniedError(decision)
        return row

    def update_resource(
        self,
        subject: Subject,
        resource_type: str,
        resource_id: str,
        payload: OwnedResourceUpdate,
    ) -> OwnedRecord:
        resource_type = normalize_resource_type(resource_type)
        resolve_owned_model(resource_type)
        self._require(subject, resource_type, ACTION_UPDATE)
        try:
            with self._session() as session:
                row = self._load_for_mutation(session, subject, resource_type, resource_id)
                changes: dict[str, Any] = payload.model_dump(exclude_unset=True, exclude_none=True)
                if "name" in changes:
                    row.name = changes["name"]
                if "details" in changes:
                    row.details = dict(changes["details"])
                row.updated_at = now_utc()
                session.add(row)
                session.commit()
                session.refresh(row)
                return row
        except IntegrityError as exc:
            raise ConflictError(f"{resource_type} write rejected by store constraint") from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(UNAVAILABLE_MESSAGE) from exc

    def delete_resource(self, subject: Subject, resource_type: str, resource_id: str) -> None:
        resource_type = normalize_resource_type(resource_type)
        resolve_owned_model(resource_type)
        self._require(subject, resource_type, ACTION_DELETE)
        try:
            with self._session() as session:
                row = self._load_for_mutation(session, subject, resource_type, resource_id)
                session.delete(row)
                session.commit()
        except IntegrityError as exc:
            raise ConflictError(f"{resource_type} write rejected by store constraint") from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(UNAVAILABLE_MESSAGE) from exc
