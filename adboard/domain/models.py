from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


def now_utc() -> datetime:
    return datetime.now(UTC)


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    actor_id: str | None = Field(default=None, index=True)
    action: str
    resource: str
    outcome: str
    reason: str | None = None
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class Role(SQLModel, table=True):
    __tablename__ = "roles"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True, unique=True)
    level: int = Field(default=1, index=True)
    description: str | None = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    username: str = Field(index=True, unique=True)
    role_id: str = Field(foreign_key="roles.id", index=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Permission(SQLModel, table=True):
    __tablename__ = "permissions"
    __table_args__ = (UniqueConstraint("module", "action", name="uq_permissions_module_action"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    module: str = Field(index=True)
    action: str
    display_name: str
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class RolePermission(SQLModel, table=True):
    __tablename__ = "role_permissions"

    role_id: str = Field(foreign_key="roles.id", primary_key=True, ondelete="CASCADE")
    permission_id: str = Field(foreign_key="permissions.id", primary_key=True, ondelete="CASCADE")
    created_at: datetime = Field(default_factory=now_utc, index=True)


class OwnedRecord(SQLModel):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    owner_id: str = Field(foreign_key="users.id", index=True, nullable=False)
    name: str = Field(index=True)
    details: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Campaign(OwnedRecord, table=True):
    __tablename__ = "campaigns"


class CampaignType(OwnedRecord, table=True):
    __tablename__ = "campaign_types"


class CampaignData(OwnedRecord, table=True):
    __tablename__ = "campaign_data"


class Card(OwnedRecord, table=True):
    __tablename__ = "cards"


class Report(OwnedRecord, table=True):
    __tablename__ = "reports"


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class RoleRead(ORMReadModel):
    id: str
    name: str
    level: int
    description: str | None = None
    is_active: bool
    created_at: datetime


class PermissionCreate(BaseModel):
    module: str
    action: str
    display_name: str


class PermissionRead(ORMReadModel):
    id: str
    module: str
    action: str
    display_name: str
    is_active: bool
    created_at: datetime


class PermissionKeyRead(BaseModel):
    module: str
    action: str
    name: str


class DecisionRead(BaseModel):
    allowed: bool
    reason: str
    module: str | None = None
    action: str | None = None
    message: str = ""


class EffectivePermissionsRead(BaseModel):
    user_id: str
    role_id: str
    role_name: str
    privileged: bool
    permissions: list[PermissionKeyRead]


class GrantResultRead(BaseModel):
    role_id: str
    permission_id: str
    changed: bool


class OwnedResourceCreate(BaseModel):
    name: str
    details: dict[str, Any] = PydanticField(default_factory=dict)


class OwnedResourceUpdate(BaseModel):
    name: str | None = None
    details: dict[str, Any] | None = None


class OwnedResourceRead(ORMReadModel):
    id: str
    owner_id: str
    name: str
    details: dict[str, Any]
    created_at: datetime
    updated_at: datetime
