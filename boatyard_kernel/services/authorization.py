"""
Role-based permission checks for governance operations.

Roles map to flat permission sets loaded from configuration
(``boatyard_config``).  Governance services only ask two questions: may
this user approve an amendment, and may this user emergency-unlock a
frozen configuration.
"""

from collections.abc import Iterable, Mapping
from enum import Enum

from boatyard_kernel.domain.actors import User
from boatyard_kernel.exceptions import UnauthorizedError
from boatyard_kernel.logging_config import get_logger

logger = get_logger("services.authorization")


class Permission(str, Enum):
    PROJECT_TRANSITION = "project:transition"
    PROJECT_ARCHIVE = "project:archive"
    CONFIGURATION_UPDATE = "configuration:update"
    CONFIGURATION_FREEZE = "configuration:freeze"
    AMENDMENT_CREATE = "amendment:create"
    AMENDMENT_APPROVE = "amendment:approve"
    EMERGENCY_UNLOCK = "emergency:unlock"


class RolePermissionAuthority:
    """
    ``AmendmentAuthority`` backed by a role -> permissions table.

    Role names are matched case-insensitively.  Unknown roles have no
    permissions.
    """

    def __init__(self, role_permissions: Mapping[str, Iterable[str]]):
        self._table: dict[str, frozenset[str]] = {
            role.upper(): frozenset(str(p) for p in permissions)
            for role, permissions in role_permissions.items()
        }

    def permissions_for(self, role: str) -> frozenset[str]:
        return self._table.get(role.upper(), frozenset())

    def has_permission(self, user: User, permission: Permission | str) -> bool:
        value = permission.value if isinstance(permission, Permission) else permission
        return value in self.permissions_for(user.role)

    def require(self, user: User, permission: Permission | str, message: str | None = None) -> None:
        """Raise UnauthorizedError unless ``user`` holds ``permission``."""
        if not self.has_permission(user, permission):
            value = permission.value if isinstance(permission, Permission) else permission
            logger.warning(
                "permission_denied",
                extra={"user_id": str(user.id), "role": user.role, "permission": value},
            )
            raise UnauthorizedError(str(user.id), value, message)

    def can_approve_amendment(self, user: User) -> bool:
        return self.has_permission(user, Permission.AMENDMENT_APPROVE)

    def can_emergency_unlock(self, user: User) -> bool:
        return self.has_permission(user, Permission.EMERGENCY_UNLOCK)
