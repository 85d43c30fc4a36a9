from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import event, func
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, col, create_engine, select

from adboard.domain.access import Subject
from adboard.domain.models import Campaign, Card, Role, User
from adboard.domain.scope import PredicateKind
from adboard.infra import db
from adboard.services.errors import UnscopedResourceError
from adboard.services.row_scope_service import RowScopeFilter, normalize_resource_type, resolve_owned_model


@pytest.fixture()
def scope_engine(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Engine:
    db_path = tmp_path / "row_scope_test.db"
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


def _seed_users(engine: Engine) -> tuple[Subject, Subject, Subject]:
    with Session(engine, expire_on_commit=False) as session:
        advertiser = Role(name="advertiser", level=1)
        admin = Role(name="admin", level=8)
        session.add(advertiser)
        session.add(admin)
        session.commit()
        u1 = User(username="u1", role_id=advertiser.id)
        u2 = User(username="u2", role_id=advertiser.id)
        boss = User(username="boss", role_id=admin.id)
        session.add(u1)
        session.add(u2)
        session.add(boss)
        session.commit()
        return (
            Subject(user_id=u1.id, role_id=advertiser.id, role_name=advertiser.name, role_level=advertiser.level),
            Subject(user_id=u2.id, role_id=advertiser.id, role_name=advertiser.name, role_level=advertiser.level),
            Subject(user_id=boss.id, role_id=admin.id, role_name=admin.name, role_level=admin.level),
        )


def _seed_campaigns(engine: Engine, owner: Subject, *names: str) -> None:
    with Session(engine) as session:
        for name in names:
            session.add(Campaign(owner_id=owner.user_id, name=name))
        session.commit()


def test_scope_depends_on_privilege() -> None:
    scope_filter = RowScopeFilter()
    user = Subject(user_id="u1", role_id="r1", role_name="advertiser", role_level=1)
    admin = Subject(user_id="a1", role_id="r2", role_name="SuperAdmin", role_level=1)

    user_scope = scope_filter.scope(user, "campaigns")
    assert user_scope.kind == PredicateKind.OWNER_EQUALS
    assert user_scope.owner_id == "u1"
    assert scope_filter.scope(admin, "campaigns").is_unrestricted


def test_unknown_resource_type_is_rejected() -> None:
    user = Subject(user_id="u1", role_id="r1", role_name="advertiser", role_level=1)
    with pytest.raises(UnscopedResourceError):
        RowScopeFilter().scope(user, "brands")
    with pytest.raises(UnscopedResourceError):
        resolve_owned_model("accounts")
    assert resolve_owned_model("Campaign-Types").__tablename__ == "campaign_types"
    assert normalize_resource_type(" Campaign-Data ") == "campaign_data"


def test_non_admin_only_sees_own_rows(scope_engine: Engine) -> None:
    u1, u2, _boss = _seed_users(scope_engine)
    _seed_campaigns(scope_engine, u1, "spring", "summer")
    _seed_campaigns(scope_engine, u2, "autumn")
    scope_filter = RowScopeFilter()

    with Session(scope_engine) as session:
        rows = session.exec(scope_filter.scoped_select(u1, "campaigns")).all()
        assert sorted(item.name for item in rows) == ["spring", "summer"]
        assert {item.owner_id for item in rows} == {u1.user_id}


def test_empty_scope_is_empty_list_not_error(scope_engine: Engine) -> None:
    u1, u2, _boss = _seed_users(scope_engine)
    _seed_campaigns(scope_engine, u2, "autumn")

    with Session(scope_engine) as session:
        rows = session.exec(RowScopeFilter().scoped_select(u1, "campaigns")).all()
        cards = session.exec(RowScopeFilter().scoped_select(u2, "cards")).all()

    assert rows == []
    assert cards == []


def test_admin_sees_every_row(scope_engine: Engine) -> None:
    u1, u2, boss = _seed_users(scope_engine)
    _seed_campaigns(scope_engine, u1, "spring")
    _seed_campaigns(scope_engine, u2, "autumn")

    with Session(scope_engine) as session:
        rows = session.exec(RowScopeFilter().scoped_select(boss, "campaigns")).all()

    assert sorted(item.name for item in rows) == ["autumn", "spring"]


def test_scope_composes_with_caller_filters(scope_engine: Engine) -> None:
    u1, u2, _boss = _seed_users(scope_engine)
    _seed_campaigns(scope_engine, u1, "alpha", "beta", "gamma", "delta")
    _seed_campaigns(scope_engine, u2, "alpha-foreign", "beta-foreign")
    scope_filter = RowScopeFilter()

    statement = (
        select(Campaign)
        .where(col(Campaign.name).contains("a"))
        .order_by(col(Campaign.name).desc())
        .offset(1)
        .limit(2)
    )
    scoped = scope_filter.apply(u1, "campaigns", statement)

    with Session(scope_engine) as session:
        rows = session.exec(scoped).all()
        count_statement = scope_filter.apply(u1, "campaigns", select(func.count()).select_from(Campaign))
        total = session.exec(count_statement).one()

    # u1 owns alpha, beta, gamma, delta; desc order is gamma, delta, beta, alpha.
    assert [item.name for item in rows] == ["delta", "beta"]
    assert total == 4


def test_owner_lookup(scope_engine: Engine) -> None:
    u1, _u2, _boss = _seed_users(scope_engine)
    with Session(scope_engine, expire_on_commit=False) as session:
        card = Card(owner_id=u1.user_id, name="visa")
        session.add(card)
        session.commit()

    with Session(scope_engine) as session:
        assert RowScopeFilter().owner_of(session, "cards", card.id) == u1.user_id
        assert RowScopeFilter().owner_of(session, "cards", "missing") is None
