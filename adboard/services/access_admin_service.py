from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from adboard.domain.models import Permission, PermissionCreate, Role
from adboard.infra import db
from adboard.services.authorization_service import UNAVAILABLE_MESSAGE
from adboard.services.errors import ConflictError, NotFoundError, StoreUnavailableError
from adboard.services.permission_catalog import PermissionCatalog
from adboard.services.provisioning_service import ProvisioningService
from adboard.services.role_grant_store import RoleGrantStore

T = TypeVar("T")


class AccessAdminService:
    def __init__(
        self,
        *,
        catalog: PermissionCatalog | None = None,
        grants: RoleGrantStore | None = None,
    ) -> None:
        self.catalog = catalog or PermissionCatalog()
        self.grants = grants or RoleGrantStore()
        self.provisioning = ProvisioningService(catalog=self.catalog, grants=self.grants)

    def _run(self, operation: Callable[[Session], T]) -> T:
        try:
            with db.open_session() as session:
                return operation(session)
        except IntegrityError as exc:
            raise ConflictError("write rejected by store constraint") from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(UNAVAILABLE_MESSAGE) from exc

    def list_permissions(self, *, active_only: bool = False, module: str | None = None) -> list[Permission]:
        if active_only:
            return self._run(lambda session: self.catalog.list_active(session, module))
        permissions = self._run(self.catalog.list_all)
        if module is None:
            return permissions
        module_norm = module.strip().lower()
        return [item for item in permissions if item.module == module_norm]

    def register_permission(self, payload: PermissionCreate) -> Permission:
        try:
            return self.provisioning.ensure_catalog([(payload.module, payload.action, payload.display_name)])[0]
        except IntegrityError as exc:
            raise ConflictError("write rejected by store constraint") from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(UNAVAILABLE_MESSAGE) from exc

    def set_permission_active(self, module: str, action: str, is_active: bool) -> Permission:
        return self._run(lambda session: self.catalog.set_active(session, module, action, is_active))

    def list_roles(self) -> list[Role]:
        return self._run(self.grants.list_roles)

    def list_role_permissions(self, role_id: str) -> list[Permission]:
        def _operation(session: Session) -> list[Permission]:
            if self.grants.get_role(session, role_id) is None:
                raise NotFoundError("role not found")
            return self.grants.list_grants(session, role_id)

        return self._run(_operation)

    def grant(self, role_id: str, permission_id: str) -> bool:
        return self._run(lambda session: self.grants.grant(session, role_id, permission_id))

    def revoke(self, role_id: str, permission_id: str) -> bool:
        return self._run(lambda session: self.grants.revoke(session, role_id, permission_id))
