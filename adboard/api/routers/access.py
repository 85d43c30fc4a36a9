from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from adboard.api.deps import (
    get_authorization_engine,
    get_current_subject,
    raise_store_unavailable,
    require_access,
    require_all_access,
    require_any_access,
)
from adboard.domain.access import Subject
from adboard.domain.admin_policy import is_privileged
from adboard.domain.models import (
    DecisionRead,
    EffectivePermissionsRead,
    GrantResultRead,
    PermissionCreate,
    PermissionKeyRead,
    PermissionRead,
    RoleRead,
)
from adboard.domain.permissions import (
    ACTION_CREATE,
    ACTION_READ,
    ACTION_UPDATE,
    MODULE_PERMISSIONS,
    MODULE_ROLES,
)
from adboard.services.access_admin_service import AccessAdminService
from adboard.services.authorization_service import AuthorizationEngine
from adboard.services.errors import ConflictError, NotFoundError, StoreUnavailableError

router = APIRouter()


def get_access_admin_service() -> AccessAdminService:
    return AccessAdminService()


CurrentSubject = Annotated[Subject, Depends(get_current_subject)]
Engine = Annotated[AuthorizationEngine, Depends(get_authorization_engine)]
Service = Annotated[AccessAdminService, Depends(get_access_admin_service)]
AccessErrors = (ConflictError, NotFoundError, StoreUnavailableError)


def _handle_access_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, StoreUnavailableError):
        raise_store_unavailable()
    raise exc


@router.get("/me/permissions", response_model=EffectivePermissionsRead)
def my_permissions(subject: CurrentSubject, engine: Engine) -> EffectivePermissionsRead:
    try:
        keys = engine.effective_permissions(subject)
    except AccessErrors as exc:
        _handle_access_error(exc)
        raise
    return EffectivePermissionsRead(
        user_id=subject.user_id,
        role_id=subject.role_id,
        role_name=subject.role_name,
        privileged=is_privileged(subject.role),
        permissions=[PermissionKeyRead(module=item.module, action=item.action, name=item.name) for item in keys],
    )


@router.get("/check", response_model=DecisionRead)
def check_access(
    subject: CurrentSubject,
    engine: Engine,
    module: Annotated[str, Query(min_length=1)],
    action: Annotated[str, Query(min_length=1)],
) -> DecisionRead:
    decision = engine.check(subject, module, action)
    return DecisionRead(
        allowed=decision.allowed,
        reason=decision.reason.value,
        module=decision.module,
        action=decision.action,
        message=decision.message,
    )


@router.get(
    "/permissions",
    response_model=list[PermissionRead],
    dependencies=[Depends(require_any_access((MODULE_PERMISSIONS, ACTION_READ), (MODULE_ROLES, ACTION_UPDATE)))],
)
def list_permissions(
    service: Service,
    module: str | None = None,
    active_only: bool = False,
) -> list[PermissionRead]:
    try:
        permissions = service.list_permissions(active_only=active_only, module=module)
    except AccessErrors as exc:
        _handle_access_error(exc)
        raise
    return [PermissionRead.model_validate(item) for item in permissions]


@router.post(
    "/permissions",
    response_model=PermissionRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_access(MODULE_PERMISSIONS, ACTION_CREATE))],
)
def register_permission(payload: PermissionCreate, service: Service) -> PermissionRead:
    try:
        permission = service.register_permission(payload)
    except AccessErrors as exc:
        _handle_access_error(exc)
        raise
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return PermissionRead.model_validate(permission)


@router.post(
    "/permissions/{module}/{action}:deactivate",
    response_model=PermissionRead,
    dependencies=[Depends(require_access(MODULE_PERMISSIONS, ACTION_UPDATE))],
)
def deactivate_permission(module: str, action: str, service: Service) -> PermissionRead:
    try:
        permission = service.set_permission_active(module, action, False)
    except AccessErrors as exc:
        _handle_access_error(exc)
        raise
    return PermissionRead.model_validate(permission)


@router.post(
    "/permissions/{module}/{action}:activate",
    response_model=PermissionRead,
    dependencies=[Depends(require_access(MODULE_PERMISSIONS, ACTION_UPDATE))],
)
def activate_permission(module: str, action: str, service: Service) -> PermissionRead:
    try:
        permission = service.set_permission_active(module, action, True)
    except AccessErrors as exc:
        _handle_access_error(exc)
        raise
    return PermissionRead.model_validate(permission)


@router.get(
    "/roles",
    response_model=list[RoleRead],
    dependencies=[Depends(require_access(MODULE_ROLES, ACTION_READ))],
)
def list_roles(service: Service) -> list[RoleRead]:
    try:
        roles = service.list_roles()
    except AccessErrors as exc:
        _handle_access_error(exc)
        raise
    return [RoleRead.model_validate(item) for item in roles]


@router.get(
    "/roles/{role_id}/permissions",
    response_model=list[PermissionRead],
    dependencies=[Depends(require_all_access((MODULE_ROLES, ACTION_READ), (MODULE_PERMISSIONS, ACTION_READ)))],
)
def list_role_permissions(role_id: str, service: Service) -> list[PermissionRead]:
    try:
        permissions = service.list_role_permissions(role_id)
    except AccessErrors as exc:
        _handle_access_error(exc)
        raise
    return [PermissionRead.model_validate(item) for item in permissions]


@router.put(
    "/roles/{role_id}/permissions/{permission_id}",
    response_model=GrantResultRead,
    dependencies=[Depends(require_access(MODULE_PERMISSIONS, ACTION_UPDATE))],
)
def grant_role_permission(role_id: str, permission_id: str, service: Service) -> GrantResultRead:
    try:
        changed = service.grant(role_id, permission_id)
    except AccessErrors as exc:
        _handle_access_error(exc)
        raise
    return GrantResultRead(role_id=role_id, permission_id=permission_id, changed=changed)


@router.delete(
    "/roles/{role_id}/permissions/{permission_id}",
    response_model=GrantResultRead,
    dependencies=[Depends(require_access(MODULE_PERMISSIONS, ACTION_UPDATE))],
)
def revoke_role_permission(role_id: str, permission_id: str, service: Service) -> GrantResultRead:
    try:
        changed = service.revoke(role_id, permission_id)
    except AccessErrors as exc:
        _handle_access_error(exc)
        raise
    return GrantResultRead(role_id=role_id, permission_id=permission_id, changed=changed)
