"""
Closed set of user roles and the capabilities each one grants.
"""
from __future__ import annotations

import enum
from typing import Dict, FrozenSet


class Role(str, enum.Enum):
    STUDENT = "Student"
    ADMIN = "Admin"

    def __str__(self) -> str:
        return self.value


STUDENT_PERMISSIONS = frozenset({
    "items:create",
    "items:update:own",
    "items:delete:own",
    "cart:manage",
    "wishlist:manage",
    "reviews:create",
    "chat:use",
})

ROLE_PERMISSIONS: Dict[Role, FrozenSet[str]] = {
    Role.STUDENT: STUDENT_PERMISSIONS,
    Role.ADMIN: STUDENT_PERMISSIONS | {
        "items:moderate",
        "users:read",
        "users:manage",
        "categories:manage",
    },
}


def permissions_for(role) -> FrozenSet[str]:
    """Capabilities for a role given as a Role or its string value; unknown roles get none."""
    try:
        return ROLE_PERMISSIONS[Role(role)]
    except ValueError:
        return frozenset()
