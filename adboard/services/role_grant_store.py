from __future__ import annotations

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from adboard.domain.models import Permission, Role, RolePermission
from adboard.domain.permissions import normalize_token
from adboard.services.errors import NotFoundError


class RoleGrantStore:
    """Role -> permission associations.

    Reads always hit the store. Inactive permissions never count as granted,
    but their grant rows are kept so reactivation restores them.
    """

    def get_role(self, session: Session, role_id: str) -> Role | None:
        return session.get(Role, role_id)

    def list_roles(self, session: Session) -> list[Role]:
        roles = list(session.exec(select(Role)).all())
        return sorted(roles, key=lambda item: (-item.level, item.name))

    def grant(self, session: Session, role_id: str, permission_id: str) -> bool:
        if session.get(RolePermission, (role_id, permission_id)) is not None:
            return False
        if session.get(Role, role_id) is None:
            raise NotFoundError("role not found")
        if session.get(Permission, permission_id) is None:
            raise NotFoundError("permission not found")

        session.add(RolePermission(role_id=role_id, permission_id=permission_id))
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            if session.get(RolePermission, (role_id, permission_id)) is not None:
                return False
            raise
        return True

    def revoke(self, session: Session, role_id: str, permission_id: str) -> bool:
        statement = (
            delete(RolePermission)
            .where(col(RolePermission.role_id) == role_id)
            .where(col(RolePermission.permission_id) == permission_id)
        )
        result = session.execute(statement)
        session.commit()
        return bool(result.rowcount)

    def has_grant(self, session: Session, role_id: str, permission_id: str) -> bool:
        statement = (
            select(RolePermission.permission_id)
            .join(Permission, col(Permission.id) == col(RolePermission.permission_id))
            .where(RolePermission.role_id == role_id)
            .where(RolePermission.permission_id == permission_id)
            .where(Permission.is_active == True)  # noqa: E712
        )
        return session.exec(statement).first() is not None

    def list_grants(self, session: Session, role_id: str) -> list[Permission]:
        statement = (
            select(Permission)
            .join(RolePermission, col(RolePermission.permission_id) == col(Permission.id))
            .where(RolePermission.role_id == role_id)
            .where(Permission.is_active == True)  # noqa: E712
        )
        permissions = list(session.exec(statement).all())
        return sorted(permissions, key=lambda item: (item.module, item.action))

    def list_granted_actions(self, session: Session, role_id: str, module: str) -> list[str]:
        module_norm = normalize_token(module)
        return [item.action for item in self.list_grants(session, role_id) if item.module == module_norm]

    def list_grant_rows(self, session: Session, role_id: str) -> list[RolePermission]:
        """Raw grant rows, including those pointing at inactive permissions."""
        statement = select(RolePermission).where(RolePermission.role_id == role_id)
        return list(session.exec(statement).all())
