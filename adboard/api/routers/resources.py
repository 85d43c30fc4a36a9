from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from adboard.api.deps import get_current_subject, raise_for_decision, raise_store_unavailable
from adboard.domain.access import Subject
from adboard.domain.models import OwnedResourceCreate, OwnedResourceRead, OwnedResourceUpdate
from adboard.services.errors import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
    UnscopedResourceError,
)
from adboard.services.resource_service import ResourceService

router = APIRouter()


def get_resource_service() -> ResourceService:
    return ResourceService()


CurrentSubject = Annotated[Subject, Depends(get_current_subject)]
Service = Annotated[ResourceService, Depends(get_resource_service)]
ResourceErrors = (AccessDeniedError, ConflictError, NotFoundError, StoreUnavailableError, UnscopedResourceError)


def _handle_resource_error(exc: Exception) -> None:
    if isinstance(exc, AccessDeniedError):
        raise_for_decision(exc.decision)
    if isinstance(exc, NotFoundError | UnscopedResourceError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, StoreUnavailableError):
        raise_store_unavailable()
    raise exc


@router.post("/{resource_type}", response_model=OwnedResourceRead, status_code=status.HTTP_201_CREATED)
def create_resource(
    resource_type: str,
    payload: OwnedResourceCreate,
    subject: CurrentSubject,
    service: Service,
) -> OwnedResourceRead:
    try:
        row = service.create_resource(subject, resource_type, payload)
        return OwnedResourceRead.model_validate(row)
    except ResourceErrors as exc:
        _handle_resource_error(exc)
        raise


@router.get("/{resource_type}", response_model=list[OwnedResourceRead])
def list_resources(
    resource_type: str,
    subject: CurrentSubject,
    service: Service,
    q: str | None = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> list[OwnedResourceRead]:
    try:
        rows = service.list_resources(subject, resource_type, name_contains=q, offset=offset, limit=limit)
        return [OwnedResourceRead.model_validate(item) for item in rows]
    except ResourceErrors as exc:
        _handle_resource_error(exc)
        raise


@router.get("/{resource_type}/{resource_id}", response_model=OwnedResourceRead)
def get_resource(
    resource_type: str,
    resource_id: str,
    subject: CurrentSubject,
    service: Service,
) -> OwnedResourceRead:
    try:
        row = service.get_resource(subject, resource_type, resource_id)
        return OwnedResourceRead.model_validate(row)
    except ResourceErrors as exc:
        _handle_resource_error(exc)
        raise


@router.patch("/{resource_type}/{resource_id}", response_model=OwnedResourceRead)
def update_resource(
    resource_type: str,
    resource_id: str,
    payload: OwnedResourceUpdate,
    subject: CurrentSubject,
    service: Service,
) -> OwnedResourceRead:
    try:
        row = service.update_resource(subject, resource_type, resource_id, payload)
        return OwnedResourceRead.model_validate(row)
    except ResourceErrors as exc:
        _handle_resource_error(exc)
        raise


@router.delete("/{resource_type}/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_resource(
    resource_type: str,
    resource_id: str,
    subject: CurrentSubject,
    service: Service,
) -> Response:
    try:
        service.delete_resource(subject, resource_type, resource_id)
    except ResourceErrors as exc:
        _handle_resource_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
