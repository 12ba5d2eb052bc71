"""
Role capability table.

Roles are hierarchical: admin extends user, superadmin extends admin. The
table is computed once at import time and never mutated afterwards.
Holding an ``*_any`` grant implies the matching ``*_own`` grant.
"""

from enum import Enum
from typing import FrozenSet, Mapping, Tuple, Union


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class Action(str, Enum):
    CREATE_OWN = "create:own"
    READ_OWN = "read:own"
    UPDATE_OWN = "update:own"
    CREATE_ANY = "create:any"
    READ_ANY = "read:any"
    UPDATE_ANY = "update:any"
    DELETE_ANY = "delete:any"


class Resource(str, Enum):
    PROFILE = "profile"
    BOOKING = "booking"
    PAYMENT = "payment"
    NOTIFICATION = "notification"
    USER = "user"
    ROLE = "role"
    ROOM = "room"
    HOUSEKEEPING = "housekeeping"
    REPORT = "report"
    REVIEW = "review"


Grant = Tuple[Action, Resource]

_OWN_FOR_ANY = {
    Action.CREATE_ANY: Action.CREATE_OWN,
    Action.READ_ANY: Action.READ_OWN,
    Action.UPDATE_ANY: Action.UPDATE_OWN,
}

_USER_GRANTS: FrozenSet[Grant] = frozenset({
    (Action.READ_OWN, Resource.PROFILE),
    (Action.UPDATE_OWN, Resource.PROFILE),
    (Action.CREATE_OWN, Resource.BOOKING),
    (Action.READ_OWN, Resource.BOOKING),
    (Action.UPDATE_OWN, Resource.BOOKING),
    (Action.UPDATE_OWN, Resource.PAYMENT),
    (Action.READ_OWN, Resource.NOTIFICATION),
    (Action.UPDATE_OWN, Resource.NOTIFICATION),
    (Action.CREATE_OWN, Resource.REVIEW),
})

_ADMIN_GRANTS: FrozenSet[Grant] = _USER_GRANTS | frozenset({
    (Action.READ_ANY, Resource.USER),
    (Action.UPDATE_ANY, Resource.USER),
    (Action.READ_ANY, Resource.BOOKING),
    (Action.UPDATE_ANY, Resource.BOOKING),
    (Action.DELETE_ANY, Resource.BOOKING),
    (Action.UPDATE_ANY, Resource.PAYMENT),
    (Action.READ_ANY, Resource.ROOM),
    (Action.CREATE_ANY, Resource.ROOM),
    (Action.UPDATE_ANY, Resource.ROOM),
    (Action.DELETE_ANY, Resource.ROOM),
    (Action.READ_ANY, Resource.HOUSEKEEPING),
    (Action.UPDATE_ANY, Resource.HOUSEKEEPING),
    (Action.READ_ANY, Resource.REPORT),
})

_SUPERADMIN_GRANTS: FrozenSet[Grant] = _ADMIN_GRANTS | frozenset({
    (Action.DELETE_ANY, Resource.USER),
    (Action.UPDATE_ANY, Resource.ROLE),
})


def _expand(grants: FrozenSet[Grant]) -> FrozenSet[Grant]:
    implied = {
        (_OWN_FOR_ANY[action], resource)
        for action, resource in grants
        if action in _OWN_FOR_ANY
    }
    return grants | frozenset(implied)


PERMISSIONS: Mapping[Role, FrozenSet[Grant]] = {
    Role.USER: _expand(_USER_GRANTS),
    Role.ADMIN: _expand(_ADMIN_GRANTS),
    Role.SUPERADMIN: _expand(_SUPERADMIN_GRANTS),
}

ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPERADMIN})


def _as_role(role: Union[Role, str, None]) -> Union[Role, None]:
    if role is None:
        return None
    try:
        return Role(role)
    except ValueError:
        return None


def has_permission(
    role: Union[Role, str, None],
    action: Union[Action, str],
    resource: Union[Resource, str],
) -> bool:
    resolved = _as_role(role)
    if resolved is None:
        return False
    try:
        grant = (Action(action), Resource(resource))
    except ValueError:
        return False
    return grant in PERMISSIONS[resolved]


def is_admin(role: Union[Role, str, None]) -> bool:
    return _as_role(role) in ADMIN_ROLES
