from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

ACTION_CREATE = "create"
ACTION_READ = "read"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
CRUD_ACTIONS = (ACTION_CREATE, ACTION_READ, ACTION_UPDATE, ACTION_DELETE)

MODULE_USERS = "users"
MODULE_ROLES = "roles"
MODULE_PERMISSIONS = "permissions"
MODULE_MODULES = "modules"
MODULE_BRANDS = "brands"
MODULE_CAMPAIGNS = "campaigns"
MODULE_CAMPAIGN_TYPES = "campaign_types"
MODULE_CAMPAIGN_DATA = "campaign_data"
MODULE_CARDS = "cards"
MODULE_CARD_USERS = "card_users"
MODULE_ACCOUNTS = "accounts"
MODULE_ADS = "ads"
MODULE_REPORTS = "reports"

DEFAULT_MODULES = [
    MODULE_USERS,
    MODULE_ROLES,
    MODULE_PERMISSIONS,
    MODULE_MODULES,
    MODULE_BRANDS,
    MODULE_CAMPAIGNS,
    MODULE_CAMPAIGN_TYPES,
    MODULE_CAMPAIGN_DATA,
    MODULE_CARDS,
    MODULE_CARD_USERS,
    MODULE_ACCOUNTS,
    MODULE_ADS,
    MODULE_REPORTS,
]

# Modules every active role can read regardless of its template.
BASELINE_MODULES = [MODULE_ADS, MODULE_MODULES]

HTTP_METHOD_ACTIONS = {
    "GET": ACTION_READ,
    "HEAD": ACTION_READ,
    "POST": ACTION_CREATE,
    "PUT": ACTION_UPDATE,
    "PATCH": ACTION_UPDATE,
    "DELETE": ACTION_DELETE,
}


class PermissionKeyError(ValueError):
    pass


def normalize_token(value: str) -> str:
    return value.strip().lower()


@dataclass(frozen=True, order=True)
class PermissionKey:
    module: str
    action: str

    @classmethod
    def of(cls, module: str, action: str) -> PermissionKey:
        module_norm = normalize_token(module)
        action_norm = normalize_token(action)
        if not module_norm or not action_norm:
            raise PermissionKeyError(f"invalid permission key: {module!r}/{action!r}")
        return cls(module=module_norm, action=action_norm)

    @property
    def name(self) -> str:
        return f"{self.module}.{self.action}"


@dataclass(frozen=True)
class PermissionDefinition:
    module: str
    action: str
    display_name: str

    @property
    def key(self) -> PermissionKey:
        return PermissionKey.of(self.module, self.action)


@dataclass(frozen=True)
class CanonicalGrant:
    module: str
    action: str
    kind: Literal["canonical"] = "canonical"


@dataclass(frozen=True)
class LegacyGrant:
    """Grant expressed in the retired http-method/endpoint permission schema."""

    http_method: str
    endpoint: str
    kind: Literal["legacy"] = "legacy"


GrantSpec = CanonicalGrant | LegacyGrant


def _module_from_endpoint(endpoint: str) -> str:
    segments = [item for item in endpoint.strip().split("/") if item]
    if segments and segments[0] == "api":
        segments = segments[1:]
    if not segments or segments[0].startswith(":"):
        raise PermissionKeyError(f"cannot resolve module from endpoint: {endpoint!r}")
    return segments[0].replace("-", "_")


def to_permission_key(grant: GrantSpec) -> PermissionKey:
    if isinstance(grant, CanonicalGrant):
        return PermissionKey.of(grant.module, grant.action)
    action = HTTP_METHOD_ACTIONS.get(grant.http_method.strip().upper())
    if action is None:
        raise PermissionKeyError(f"unsupported http method: {grant.http_method!r}")
    return PermissionKey.of(_module_from_endpoint(grant.endpoint), action)


def parse_permission_name(name: str) -> PermissionKey:
    """Accept ``campaigns.read`` as well as the older ``campaign_data_read`` form."""
    value = normalize_token(name)
    if "." in value:
        module, _, action = value.rpartition(".")
    else:
        module, _, action = value.rpartition("_")
    if not module or not action:
        raise PermissionKeyError(f"invalid permission name: {name!r}")
    return PermissionKey.of(module, action)


def coerce_permission_key(value: Any) -> PermissionKey:
    if isinstance(value, PermissionKey):
        return value
    if isinstance(value, CanonicalGrant | LegacyGrant):
        return to_permission_key(value)
    if isinstance(value, PermissionDefinition):
        return value.key
    if isinstance(value, str):
        return parse_permission_name(value)
    if isinstance(value, tuple) and len(value) == 2:
        return PermissionKey.of(str(value[0]), str(value[1]))
    raise PermissionKeyError(f"unsupported permission key: {value!r}")


def _display_name(module: str, action: str) -> str:
    return f"{action.capitalize()} {module.replace('_', ' ')}"


def default_catalog() -> list[PermissionDefinition]:
    return [
        PermissionDefinition(module=module, action=action, display_name=_display_name(module, action))
        for module in DEFAULT_MODULES
        for action in CRUD_ACTIONS
    ]


def crud_keys(module: str, *actions: str) -> list[PermissionKey]:
    return [PermissionKey.of(module, action) for action in (actions or CRUD_ACTIONS)]


ROLE_TEMPLATES: tuple[dict[str, Any], ...] = (
    {
        "name": "super_admin",
        "level": 10,
        "description": "full system access",
        "permissions": [],
    },
    {
        "name": "admin",
        "level": 8,
        "description": "dashboard administrator",
        "permissions": [],
    },
    {
        "name": "manager",
        "level": 5,
        "description": "campaign and reporting manager",
        "permissions": [
            *crud_keys(MODULE_CAMPAIGNS),
            *crud_keys(MODULE_CAMPAIGN_DATA),
            *crud_keys(MODULE_CARDS),
            *crud_keys(MODULE_REPORTS),
            *crud_keys(MODULE_CAMPAIGN_TYPES, ACTION_READ),
            *crud_keys(MODULE_BRANDS, ACTION_READ),
            *crud_keys(MODULE_USERS, ACTION_READ),
        ],
    },
    {
        "name": "advertiser",
        "level": 1,
        "description": "runs own campaigns",
        "permissions": [
            *crud_keys(MODULE_CAMPAIGNS, ACTION_CREATE, ACTION_READ),
            *crud_keys(MODULE_CAMPAIGN_DATA, ACTION_CREATE, ACTION_READ),
            *crud_keys(MODULE_CARDS, ACTION_READ),
            *crud_keys(MODULE_REPORTS, ACTION_READ),
            *crud_keys(MODULE_BRANDS, ACTION_READ),
            *crud_keys(MODULE_CAMPAIGN_TYPES, ACTION_READ),
        ],
    },
)
