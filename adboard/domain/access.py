from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class DecisionReason(StrEnum):
    ADMIN_BYPASS = "ADMIN_BYPASS"
    GRANTED = "GRANTED"
    OWNER = "OWNER"
    MISSING_GRANT = "MISSING_GRANT"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    NOT_OWNER = "NOT_OWNER"
    UNAVAILABLE = "UNAVAILABLE"


@dataclass(frozen=True)
class RoleRef:
    id: str
    name: str
    level: int


@dataclass(frozen=True)
class Subject:
    """Caller identity resolved once per request by the identity layer."""

    user_id: str
    role_id: str
    role_name: str
    role_level: int

    @property
    def role(self) -> RoleRef:
        return RoleRef(id=self.role_id, name=self.role_name, level=self.role_level)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DecisionReason
    module: str | None = None
    action: str | None = None
    message: str = ""

    @classmethod
    def allow(
        cls,
        reason: DecisionReason,
        *,
        module: str | None = None,
        action: str | None = None,
    ) -> Decision:
        return cls(allowed=True, reason=reason, module=module, action=action)

    @classmethod
    def deny(
        cls,
        reason: DecisionReason,
        message: str,
        *,
        module: str | None = None,
        action: str | None = None,
    ) -> Decision:
        return cls(allowed=False, reason=reason, module=module, action=action, message=message)

    def as_detail(self) -> dict[str, str]:
        # Public denial body: reason code and message only.
        return {"code": self.reason.value, "message": self.message}
