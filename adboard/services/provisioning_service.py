"""Idempotent seeding of the permission catalog, roles and grants.

These are the only sanctioned entry points for bulk permission changes.
Every operation may be re-run any number of times; a second run with the same
input leaves the store unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from adboard.domain.models import Permission, Role
from adboard.domain.permissions import (
    BASELINE_MODULES,
    ROLE_TEMPLATES,
    PermissionDefinition,
    PermissionKey,
    PermissionKeyError,
    coerce_permission_key,
    default_catalog,
)
from adboard.infra import db
from adboard.infra.logging import get_logger
from adboard.services.errors import NotFoundError
from adboard.services.permission_catalog import PermissionCatalog
from adboard.services.role_grant_store import RoleGrantStore

logger = get_logger(__name__)


@dataclass
class ProvisioningReport:
    permissions_total: int = 0
    roles_created: int = 0
    grants_created: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "permissions_total": self.permissions_total,
            "roles_created": self.roles_created,
            "grants_created": self.grants_created,
        }


def _as_definition(item: Any) -> PermissionDefinition:
    if isinstance(item, PermissionDefinition):
        return item
    if isinstance(item, tuple) and len(item) == 3:
        module, action, display_name = item
        return PermissionDefinition(module=str(module), action=str(action), display_name=str(display_name))
    raise PermissionKeyError(f"unsupported permission definition: {item!r}")


class ProvisioningService:
    def __init__(
        self,
        *,
        catalog: PermissionCatalog | None = None,
        grants: RoleGrantStore | None = None,
    ) -> None:
        self.catalog = catalog or PermissionCatalog()
        self.grants = grants or RoleGrantStore()

    def _session(self) -> Session:
        return db.open_session()

    def ensure_catalog(self, definitions: Iterable[Any]) -> list[Permission]:
        resolved = [_as_definition(item) for item in definitions]
        with self._session() as session:
            permissions = [
                self.catalog.register(session, item.module, item.action, item.display_name) for item in resolved
            ]
        logger.info("provisioning.catalog", definitions=len(resolved))
        return permissions

    def _resolve_permissions(self, session: Session, keys: Sequence[PermissionKey]) -> list[Permission]:
        resolved: list[Permission] = []
        missing: list[str] = []
        for key in keys:
            permission = self.catalog.lookup(session, key.module, key.action)
            if permission is None:
                missing.append(key.name)
                continue
            resolved.append(permission)
        if missing:
            raise NotFoundError(f"permissions not registered: {sorted(set(missing))}")
        return resolved

    def ensure_grants(self, role_id: str, permission_keys: Iterable[Any]) -> int:
        keys = [coerce_permission_key(item) for item in permission_keys]
        with self._session() as session:
            if self.grants.get_role(session, role_id) is None:
                raise NotFoundError("role not found")
            permissions = self._resolve_permissions(session, keys)
            created = sum(1 for item in permissions if self.grants.grant(session, role_id, item.id))
        logger.info("provisioning.grants", role_id=role_id, requested=len(keys), created=created)
        return created

    def _find_role(self, session: Session, name: str) -> Role | None:
        return session.exec(select(Role).where(Role.name == name)).first()

    def ensure_role(self, name: str, level: int, description: str | None = None) -> tuple[Role, bool]:
        with self._session() as session:
            role = self._find_role(session, name)
            created = False
            if role is None:
                role = Role(name=name, level=level, description=description)
                session.add(role)
                try:
                    session.commit()
                    created = True
                except IntegrityError:
                    session.rollback()
                    role = self._find_role(session, name)
                    if role is None:
                        raise
            if role.level != level or (description is not None and role.description != description):
                role.level = level
                if description is not None:
                    role.description = description
                session.add(role)
                session.commit()
            session.refresh(role)
            return role, created

    def ensure_baseline_grants(self, modules: Sequence[str] = tuple(BASELINE_MODULES)) -> int:
        """Give every active role read access to the baseline modules."""
        keys = [PermissionKey.of(module, "read") for module in modules]
        with self._session() as session:
            role_ids = [item.id for item in session.exec(select(Role).where(Role.is_active == True)).all()]  # noqa: E712
        return sum(self.ensure_grants(role_id, keys) for role_id in role_ids)

    def ensure_defaults(self) -> ProvisioningReport:
        report = ProvisioningReport()
        report.permissions_total = len(self.ensure_catalog(default_catalog()))
        for template in ROLE_TEMPLATES:
            role, created = self.ensure_role(
                str(template["name"]),
                int(template["level"]),
                str(template["description"]),
            )
            report.roles_created += int(created)
            report.grants_created += self.ensure_grants(role.id, template["permissions"])
        report.grants_created += self.ensure_baseline_grants()
        logger.info("provisioning.defaults", **report.as_dict())
        return report
