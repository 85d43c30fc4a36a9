from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import event, func
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine, select

from adboard.domain.models import Permission, Role, RolePermission
from adboard.domain.permissions import (
    DEFAULT_MODULES,
    LegacyGrant,
    PermissionDefinition,
    PermissionKey,
)
from adboard.infra import db
from adboard.services.errors import NotFoundError
from adboard.services.provisioning_service import ProvisioningService


@pytest.fixture()
def provisioning_engine(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Engine:
    db_path = tmp_path / "provisioning_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    return test_engine


def _count(engine: Engine, model: type[SQLModel]) -> int:
    with Session(engine) as session:
        return int(session.exec(select(func.count()).select_from(model)).one())


def _snapshot(engine: Engine) -> tuple[set[tuple[str, str, str, bool]], set[tuple[str, str]]]:
    with Session(engine) as session:
        permissions = {
            (item.module, item.action, item.display_name, item.is_active)
            for item in session.exec(select(Permission)).all()
        }
        grants = {(item.role_id, item.permission_id) for item in session.exec(select(RolePermission)).all()}
    return permissions, grants


def test_ensure_catalog_is_idempotent(provisioning_engine: Engine) -> None:
    service = ProvisioningService()
    definitions = [
        PermissionDefinition(module="campaigns", action="read", display_name="Read campaigns"),
        ("Campaigns", "Create", "Create campaigns"),
    ]

    first = service.ensure_catalog(definitions)
    before = _snapshot(provisioning_engine)
    second = service.ensure_catalog(definitions)

    assert [item.id for item in first] == [item.id for item in second]
    assert _snapshot(provisioning_engine) == before
    assert _count(provisioning_engine, Permission) == 2
    assert {(item.module, item.action) for item in second} == {("campaigns", "read"), ("campaigns", "create")}


def test_ensure_grants_is_idempotent(provisioning_engine: Engine) -> None:
    service = ProvisioningService()
    service.ensure_catalog([("campaigns", "read", "Read campaigns"), ("campaigns", "update", "Update campaigns")])
    role, created = service.ensure_role("advertiser", 1)
    assert created

    keys = [PermissionKey.of("campaigns", "read"), "campaigns.update"]
    assert service.ensure_grants(role.id, keys) == 2
    assert service.ensure_grants(role.id, keys) == 0
    assert _count(provisioning_engine, RolePermission) == 2


def test_ensure_grants_accepts_legacy_keys(provisioning_engine: Engine) -> None:
    service = ProvisioningService()
    service.ensure_catalog([("campaign_types", "update", "Update campaign types")])
    role, _ = service.ensure_role("manager", 5)

    created = service.ensure_grants(role.id, [LegacyGrant(http_method="PUT", endpoint="/api/campaign-types/:id")])

    assert created == 1
    assert service.ensure_grants(role.id, [("campaign_types", "update")]) == 0


def test_ensure_grants_rejects_unregistered_keys_without_writing(provisioning_engine: Engine) -> None:
    service = ProvisioningService()
    service.ensure_catalog([("campaigns", "read", "Read campaigns")])
    role, _ = service.ensure_role("advertiser", 1)

    with pytest.raises(NotFoundError):
        service.ensure_grants(role.id, [("campaigns", "read"), ("brands", "create")])

    assert _count(provisioning_engine, RolePermission) == 0


def test_ensure_grants_requires_role(provisioning_engine: Engine) -> None:
    service = ProvisioningService()
    service.ensure_catalog([("campaigns", "read", "Read campaigns")])

    with pytest.raises(NotFoundError):
        service.ensure_grants("missing-role", [("campaigns", "read")])


def test_ensure_role_updates_level_without_duplicating(provisioning_engine: Engine) -> None:
    service = ProvisioningService()
    role, created = service.ensure_role("manager", 5, "old")
    again, created_again = service.ensure_role("manager", 6, "new")

    assert created
    assert not created_again
    assert again.id == role.id
    assert again.level == 6
    assert again.description == "new"
    assert _count(provisioning_engine, Role) == 1


def test_ensure_defaults_is_idempotent(provisioning_engine: Engine) -> None:
    service = ProvisioningService()

    first = service.ensure_defaults()
    before = _snapshot(provisioning_engine)
    second = service.ensure_defaults()

    assert first.permissions_total == len(DEFAULT_MODULES) * 4
    assert first.roles_created == 4
    assert first.grants_created > 0
    assert second.roles_created == 0
    assert second.grants_created == 0
    assert _snapshot(provisioning_engine) == before


def test_baseline_grants_reach_every_active_role(provisioning_engine: Engine) -> None:
    service = ProvisioningService()
    service.ensure_defaults()
    extra, _ = service.ensure_role("analyst", 2)

    assert service.ensure_baseline_grants() == 2

    with Session(provisioning_engine) as session:
        modules = {
            permission.module
            for permission in session.exec(
                select(Permission)
                .join(RolePermission, RolePermission.permission_id == Permission.id)  # type: ignore[arg-type]
                .where(RolePermission.role_id == extra.id)
            ).all()
        }
    assert modules == {"ads", "modules"}


def test_ensure_role_absorbs_lost_insert_race(provisioning_engine: Engine, monkeypatch: pytest.MonkeyPatch) -> None:
    service = ProvisioningService()
    winner, _ = service.ensure_role("manager", 5, "campaign and reporting manager")

    real_find = service._find_role
    misses: list[str] = []

    def _stale_find(session: Session, name: str) -> Role | None:
        if not misses:
            misses.append(name)
            return None
        return real_find(session, name)

    monkeypatch.setattr(service, "_find_role", _stale_find)
    role, created = service.ensure_role("manager", 5, "campaign and reporting manager")

    assert misses == ["manager"]
    assert not created
    assert role.id == winner.id
    assert _count(provisioning_engine, Role) == 1
