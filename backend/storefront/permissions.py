# Overview: Role constants and the single capability check used by every privileged endpoint.

from .models.auth import ROLE_USER, ROLE_ADMIN, ROLE_SUPERADMIN, ROLES


STAFF_ROLES = frozenset({ROLE_ADMIN, ROLE_SUPERADMIN})
ALL_ROLES = frozenset(ROLES)

# Roles each actor may hand out when creating accounts
ASSIGNABLE_ROLES = {
    ROLE_SUPERADMIN: frozenset(ROLES),
    ROLE_ADMIN: frozenset({ROLE_USER}),
    ROLE_USER: frozenset(),
}


def is_allowed(caller_role: str | None, required_roles) -> bool:
    """
    Decide whether a caller with `caller_role` may perform an operation
    restricted to `required_roles`. Fails closed on unknown roles.
    """
    if not caller_role or caller_role not in ALL_ROLES:
        return False
    return caller_role in set(required_roles)


def is_staff(caller_role: str | None) -> bool:
    return is_allowed(caller_role, STAFF_ROLES)


def can_assign_role(caller_role: str | None, target_role: str) -> bool:
    return target_role in ASSIGNABLE_ROLES.get(caller_role or "", frozenset())
