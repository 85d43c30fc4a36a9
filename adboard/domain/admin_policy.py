"""The one definition of a globally privileged role.

Every component that needs to know whether a caller bypasses module/action
grants and row ownership calls :func:`is_privileged`. Nothing else in the
package compares role levels or role names.
"""

from __future__ import annotations

import os
from typing import Protocol

ADMIN_LEVEL_THRESHOLD = int(os.getenv("ADMIN_LEVEL_THRESHOLD", "8"))
PRIVILEGED_ROLE_NAMES = frozenset({"super_admin", "superadmin", "admin"})


class RoleLike(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def level(self) -> int: ...


def normalize_role_name(name: str) -> str:
    return name.strip().lower().replace("-", "_").replace(" ", "_")


def is_privileged(role: RoleLike | None) -> bool:
    if role is None:
        return False
    level = role.level if isinstance(role.level, int) else 0
    if level >= ADMIN_LEVEL_THRESHOLD:
        return True
    name = role.name if isinstance(role.name, str) else ""
    return normalize_role_name(name) in PRIVILEGED_ROLE_NAMES
