from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from adboard.domain.models import Permission, now_utc
from adboard.domain.permissions import PermissionKey, normalize_token
from adboard.services.errors import NotFoundError


class PermissionCatalog:
    """Registry of every (module, action) pair that can ever be checked."""

    def lookup(self, session: Session, module: str, action: str) -> Permission | None:
        key = PermissionKey.of(module, action)
        statement = (
            select(Permission)
            .where(Permission.module == key.module)
            .where(Permission.action == key.action)
        )
        return session.exec(statement).first()

    def get(self, session: Session, permission_id: str) -> Permission | None:
        return session.get(Permission, permission_id)

    def register(self, session: Session, module: str, action: str, display_name: str) -> Permission:
        key = PermissionKey.of(module, action)
        existing = self.lookup(session, key.module, key.action)
        if existing is not None:
            return self._refresh_display(session, existing, display_name)

        permission = Permission(module=key.module, action=key.action, display_name=display_name)
        session.add(permission)
        try:
            session.commit()
        except IntegrityError:
            # Lost the unique (module, action) race to a concurrent registration.
            session.rollback()
            existing = self.lookup(session, key.module, key.action)
            if existing is None:
                raise
            return self._refresh_display(session, existing, display_name)
        session.refresh(permission)
        return permission

    def _refresh_display(self, session: Session, permission: Permission, display_name: str) -> Permission:
        if permission.display_name == display_name:
            return permission
        permission.display_name = display_name
        permission.updated_at = now_utc()
        session.add(permission)
        session.commit()
        session.refresh(permission)
        return permission

    def list_active(self, session: Session, module: str | None = None) -> list[Permission]:
        statement = select(Permission).where(Permission.is_active == True)  # noqa: E712
        if module is not None:
            statement = statement.where(Permission.module == normalize_token(module))
        return list(session.exec(statement).all())

    def list_all(self, session: Session) -> list[Permission]:
        permissions = list(session.exec(select(Permission)).all())
        return sorted(permissions, key=lambda item: (item.module, item.action))

    def set_active(self, session: Session, module: str, action: str, is_active: bool) -> Permission:
        permission = self.lookup(session, module, action)
        if permission is None:
            raise NotFoundError(f"permission not registered: {module}.{action}")
        if permission.is_active == is_active:
            return permission
        permission.is_active = is_active
        permission.updated_at = now_utc()
        session.add(permission)
        session.commit()
        session.refresh(permission)
        return permission

    def deactivate(self, session: Session, module: str, action: str) -> Permission:
        return self.set_active(session, module, action, False)

    def activate(self, session: Session, module: str, action: str) -> Permission:
        return self.set_active(session, module, action, True)
