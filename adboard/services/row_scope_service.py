from __future__ import annotations

from typing import Any, TypeVar

from sqlmodel import Session, col, select

from adboard.domain.access import Subject
from adboard.domain.admin_policy import is_privileged
from adboard.domain.models import Campaign, CampaignData, CampaignType, Card, OwnedRecord, Report
from adboard.domain.permissions import (
    MODULE_CAMPAIGN_DATA,
    MODULE_CAMPAIGN_TYPES,
    MODULE_CAMPAIGNS,
    MODULE_CARDS,
    MODULE_REPORTS,
    normalize_token,
)
from adboard.domain.scope import Predicate
from adboard.services.errors import UnscopedResourceError

StatementT = TypeVar("StatementT")

# Resource type -> table carrying an ``owner_id`` column. The resource type
# doubles as the permission module name.
OWNED_RESOURCES: dict[str, type[OwnedRecord]] = {
    MODULE_CAMPAIGNS: Campaign,
    MODULE_CAMPAIGN_TYPES: CampaignType,
    MODULE_CAMPAIGN_DATA: CampaignData,
    MODULE_CARDS: Card,
    MODULE_REPORTS: Report,
}


def normalize_resource_type(resource_type: str) -> str:
    return normalize_token(resource_type).replace("-", "_")


def resolve_owned_model(resource_type: str) -> type[OwnedRecord]:
    model = OWNED_RESOURCES.get(normalize_resource_type(resource_type))
    if model is None:
        raise UnscopedResourceError(f"resource type has no owner column: {resource_type}")
    return model


class RowScopeFilter:
    """Produces the row predicate every owned-resource list/read path applies."""

    def scope(self, subject: Subject, resource_type: str) -> Predicate:
        resolve_owned_model(resource_type)
        if is_privileged(subject.role):
            return Predicate.always_true()
        return Predicate.owner_equals(subject.user_id)

    def apply(self, subject: Subject, resource_type: str, statement: StatementT) -> StatementT:
        model = resolve_owned_model(resource_type)
        predicate = self.scope(subject, resource_type)
        return predicate.apply(statement, col(model.owner_id))

    def scoped_select(self, subject: Subject, resource_type: str) -> Any:
        model = resolve_owned_model(resource_type)
        return self.apply(subject, resource_type, select(model))

    def owner_of(self, session: Session, resource_type: str, resource_id: str) -> str | None:
        model = resolve_owned_model(resource_type)
        statement = select(model.owner_id).where(col(model.id) == resource_id)
        return session.exec(statement).first()
