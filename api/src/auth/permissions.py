"""Role-based access control (RBAC) for comment threads.

Hierarchical permission system:
- ADMIN (level 3): Full system access
- MODERATOR (level 2): List and delete any comment
- CREATOR (level 1): Moderate comments on own content items
- VIEWER (level 0): Comment and vote
"""

from enum import Enum


class ViewerRole(str, Enum):
    """Viewer roles with hierarchical levels.

    Higher level = more permissions.
    """

    VIEWER = "viewer"  # Level 0: Signed-in viewer
    CREATOR = "creator"  # Level 1: Owns content items
    MODERATOR = "moderator"  # Level 2: Platform moderator
    ADMIN = "admin"  # Level 3: System administrator


# Role hierarchy mapping (role -> permission level)
ROLE_HIERARCHY: dict[ViewerRole, int] = {
    ViewerRole.VIEWER: 0,
    ViewerRole.CREATOR: 1,
    ViewerRole.MODERATOR: 2,
    ViewerRole.ADMIN: 3,
}


def get_role_level(role: ViewerRole | str) -> int:
    """Get the permission level for a role.

    Unknown roles get level 0.
    """
    if isinstance(role, str):
        try:
            role = ViewerRole(role)
        except ValueError:
            return 0
    return ROLE_HIERARCHY.get(role, 0)


def has_permission(role: ViewerRole | str, required_role: ViewerRole | str) -> bool:
    """Check if a role has at least the required permission level.

    Examples:
        >>> has_permission(ViewerRole.ADMIN, ViewerRole.MODERATOR)
        True
        >>> has_permission("creator", "moderator")
        False
    """
    return get_role_level(role) >= get_role_level(required_role)


def is_moderator(role: ViewerRole | str) -> bool:
    """Check if role is MODERATOR or higher (ADMIN)."""
    return has_permission(role, ViewerRole.MODERATOR)


def is_creator(role: ViewerRole | str) -> bool:
    """Check if role is exactly CREATOR."""
    if isinstance(role, str):
        return role == ViewerRole.CREATOR.value
    return role == ViewerRole.CREATOR
