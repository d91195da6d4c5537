"""Default role definitions for AppForge.

Defines the 4 built-in system roles with their permission sets:
1. Administrator - Every catalog permission
2. Manager - Projects, workflows, datasources and team members
3. Developer - Builds workflows and datasources
4. Viewer - Read-only access
"""

from typing import Dict, List
from .permissions import Resource, Action, PermissionKey, get_all_permissions


def _build_permissions(*perms: tuple) -> List[str]:
    """Build permission strings from (Resource, Action) tuples."""
    return [str(PermissionKey.of(r, a)) for r, a in perms]


# Administrator: every permission in the catalog
ADMIN_PERMISSIONS = get_all_permissions()

MANAGER_PERMISSIONS = _build_permissions(
    (Resource.PROJECT, Action.READ),
    (Resource.PROJECT, Action.CREATE),
    (Resource.PROJECT, Action.UPDATE),

    (Resource.WORKFLOW, Action.READ),
    (Resource.WORKFLOW, Action.CREATE),
    (Resource.WORKFLOW, Action.UPDATE),
    (Resource.WORKFLOW, Action.EXECUTE),

    (Resource.DATASOURCE, Action.READ),
    (Resource.DATASOURCE, Action.CREATE),
    (Resource.DATASOURCE, Action.UPDATE),

    (Resource.USER, Action.READ),
    (Resource.USER, Action.CREATE),
    (Resource.USER, Action.UPDATE),
)

DEVELOPER_PERMISSIONS = _build_permissions(
    (Resource.PROJECT, Action.READ),

    (Resource.WORKFLOW, Action.READ),
    (Resource.WORKFLOW, Action.CREATE),
    (Resource.WORKFLOW, Action.UPDATE),
    (Resource.WORKFLOW, Action.EXECUTE),

    (Resource.DATASOURCE, Action.READ),
    (Resource.DATASOURCE, Action.CREATE),
    (Resource.DATASOURCE, Action.UPDATE),
)

VIEWER_PERMISSIONS = _build_permissions(
    (Resource.PROJECT, Action.READ),
    (Resource.WORKFLOW, Action.READ),
    (Resource.DATASOURCE, Action.READ),
)


ADMINISTRATOR_ROLE = "Administrator"

# Default roles configuration
DEFAULT_ROLES: Dict[str, dict] = {
    "administrator": {
        "name": ADMINISTRATOR_ROLE,
        "description": "Full system access with all permissions",
        "permissions": ADMIN_PERMISSIONS,
        "is_system": True,
    },
    "manager": {
        "name": "Manager",
        "description": "Can manage projects, workflows, and team members",
        "permissions": MANAGER_PERMISSIONS,
        "is_system": True,
    },
    "developer": {
        "name": "Developer",
        "description": "Can create and edit workflows and datasources",
        "permissions": DEVELOPER_PERMISSIONS,
        "is_system": True,
    },
    "viewer": {
        "name": "Viewer",
        "description": "Read-only access to projects and workflows",
        "permissions": VIEWER_PERMISSIONS,
        "is_system": True,
    },
}
