from __future__ import annotations

import pytest

from adboard.domain.access import RoleRef, Subject
from adboard.domain.admin_policy import ADMIN_LEVEL_THRESHOLD, is_privileged, normalize_role_name


@pytest.mark.parametrize("level", [ADMIN_LEVEL_THRESHOLD, ADMIN_LEVEL_THRESHOLD + 1, 10, 99])
def test_level_at_or_above_threshold_is_privileged(level: int) -> None:
    assert is_privileged(RoleRef(id="r1", name="regional-lead", level=level))


@pytest.mark.parametrize("level", [0, 1, 5, ADMIN_LEVEL_THRESHOLD - 1])
def test_level_below_threshold_is_not_privileged(level: int) -> None:
    assert not is_privileged(RoleRef(id="r1", name="advertiser", level=level))


@pytest.mark.parametrize("name", ["admin", "Admin", "super_admin", "Super Admin", "SuperAdmin", "super-admin"])
def test_privileged_names_bypass_regardless_of_level(name: str) -> None:
    assert is_privileged(RoleRef(id="r1", name=name, level=1))


def test_name_lookalikes_are_not_privileged() -> None:
    assert not is_privileged(RoleRef(id="r1", name="administrator-assistant", level=1))
    assert not is_privileged(RoleRef(id="r1", name="manager", level=5))


def test_missing_role_is_not_privileged() -> None:
    assert not is_privileged(None)


def test_subject_role_reference_feeds_policy() -> None:
    subject = Subject(user_id="u1", role_id="r1", role_name="Super Admin", role_level=10)
    assert subject.role == RoleRef(id="r1", name="Super Admin", level=10)
    assert is_privileged(subject.role)


def test_normalize_role_name() -> None:
    assert normalize_role_name("  Super Admin ") == "super_admin"
    assert normalize_role_name("SUPER-ADMIN") == "super_admin"
