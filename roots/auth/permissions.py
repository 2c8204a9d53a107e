"""Capability model: a typed permission set plus the admin capability.

Admins (role id 1, or a role named "admin") hold every permission. Everyone
else holds exactly the permissions granted to their role.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from fastapi import Depends, HTTPException, status

ADMIN_ROLE_ID = 1
ADMIN_ROLE_NAME = "admin"


class Permission(str, Enum):
    MANAGE_BOOKS = "manage_books"
    MANAGE_GALLERY = "manage_gallery"
    MANAGE_ALL_TREES = "manage_all_trees"


@dataclass(frozen=True)
class CapabilitySet:
    permissions: frozenset = field(default_factory=frozenset)
    is_admin: bool = False

    @classmethod
    def from_role(cls, role_id: int | None, role_name: str | None,
                  granted: Iterable[str] = ()) -> "CapabilitySet":
        is_admin = role_id == ADMIN_ROLE_ID or str(role_name or "").lower() == ADMIN_ROLE_NAME
        known = {p.value for p in Permission}
        perms = frozenset(Permission(name) for name in granted if name in known)
        return cls(permissions=perms, is_admin=is_admin)

    def has(self, permission: Permission) -> bool:
        return self.is_admin or permission in self.permissions

    def has_any(self, permissions: Iterable[Permission]) -> bool:
        return self.is_admin or any(p in self.permissions for p in permissions)

    def names(self) -> list[str]:
        if self.is_admin:
            return sorted(p.value for p in Permission)
        return sorted(p.value for p in self.permissions)


def has_permission(user, permission: Permission) -> bool:
    return user is not None and user.capabilities.has(permission)


def has_any_permission(user, permissions: Iterable[Permission]) -> bool:
    return user is not None and user.capabilities.has_any(permissions)


def ensure_owner_or_permission(user, owner_id: int | None, permission: Permission) -> None:
    """403 unless ``user`` owns the row or holds the manage ``permission``."""
    if has_permission(user, permission):
        return
    if owner_id is not None and int(owner_id) == int(user.id):
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def require_permission(permission: Permission):
    from roots.auth.deps import get_current_user

    def dependency(user=Depends(get_current_user)):
        if not has_permission(user, permission):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return user

    return dependency


def require_any_permission(permissions: Iterable[Permission]):
    from roots.auth.deps import get_current_user

    required = tuple(permissions)

    def dependency(user=Depends(get_current_user)):
        if not has_any_permission(user, required):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return user

    return dependency
