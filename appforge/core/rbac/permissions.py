"""Permission model for AppForge RBAC.

Defines the seed catalog of resources, actions and their descriptions, and
the parsed form of the ``"resource:action"`` wire format.

Permission string format: "resource:action"
Examples:
  - project:read
  - workflow:execute
  - user:assign_role
  - system:admin
"""

import re
from enum import Enum
from typing import NamedTuple, Union


class Resource(str, Enum):
    """Resources that can be protected by permissions."""

    # Builder resources
    PROJECT = "project"
    PAGE = "page"
    WORKFLOW = "workflow"
    DATASOURCE = "datasource"

    # Access management
    USER = "user"
    ROLE = "role"
    PERMISSION = "permission"
    GROUP = "group"

    # Platform administration
    SYSTEM = "system"


class Action(str, Enum):
    """Actions that can be performed on resources."""

    # Standard CRUD actions
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    WRITE = "write"
    DELETE = "delete"

    # Specialized actions
    EXECUTE = "execute"
    ASSIGN_ROLE = "assign_role"
    REMOVE_ROLE = "remove_role"
    MANAGE_MEMBERS = "manage_members"
    ADMIN = "admin"
    AUDIT = "audit"


_SEGMENT = re.compile(r"^[a-z][a-z0-9_]*$")


class PermissionKey(NamedTuple):
    """A validated (resource, action) pair."""
    resource: str
    action: str

    def __str__(self) -> str:
        return f"{self.resource}:{self.action}"

    @classmethod
    def from_string(cls, perm_str: str) -> "PermissionKey":
        """Parse a permission string like 'project:read'."""
        if not isinstance(perm_str, str):
            raise ValueError(f"Invalid permission format: {perm_str!r}")
        parts = perm_str.strip().split(":")
        if len(parts) != 2 or not all(_SEGMENT.match(p) for p in parts):
            raise ValueError(f"Invalid permission format: {perm_str}")
        return cls(parts[0], parts[1])

    @classmethod
    def of(cls, resource: Union[str, Resource], action: Union[str, Action]) -> "PermissionKey":
        """Build a key from enum members or plain strings."""
        resource = resource.value if isinstance(resource, Resource) else resource
        action = action.value if isinstance(action, Action) else action
        return cls.from_string(f"{resource}:{action}")


def parse_permission(perm: Union[str, PermissionKey]) -> PermissionKey:
    """Coerce a wire-format string or an existing key into a PermissionKey."""
    if isinstance(perm, PermissionKey):
        return perm
    if isinstance(perm, tuple) and len(perm) == 2:
        return PermissionKey.of(*perm)
    return PermissionKey.from_string(perm)


def _define(resource: Resource, action: Action, description: str) -> tuple[str, str]:
    return str(PermissionKey(resource.value, action.value)), description


# Seed catalog: "resource:action" -> description, in display order
PERMISSION_DEFINITIONS: dict[str, str] = dict([
    # Projects
    _define(Resource.PROJECT, Action.READ, "View projects"),
    _define(Resource.PROJECT, Action.CREATE, "Create projects"),
    _define(Resource.PROJECT, Action.UPDATE, "Edit projects"),
    _define(Resource.PROJECT, Action.DELETE, "Delete projects"),

    # Pages
    _define(Resource.PAGE, Action.READ, "View pages"),
    _define(Resource.PAGE, Action.CREATE, "Create pages"),
    _define(Resource.PAGE, Action.WRITE, "Edit page content"),
    _define(Resource.PAGE, Action.DELETE, "Delete pages"),

    # Workflows
    _define(Resource.WORKFLOW, Action.READ, "View workflows"),
    _define(Resource.WORKFLOW, Action.CREATE, "Create workflows"),
    _define(Resource.WORKFLOW, Action.UPDATE, "Edit workflows"),
    _define(Resource.WORKFLOW, Action.DELETE, "Delete workflows"),
    _define(Resource.WORKFLOW, Action.EXECUTE, "Execute workflows"),

    # Datasources
    _define(Resource.DATASOURCE, Action.READ, "View datasources"),
    _define(Resource.DATASOURCE, Action.CREATE, "Create datasources"),
    _define(Resource.DATASOURCE, Action.UPDATE, "Edit datasources"),
    _define(Resource.DATASOURCE, Action.DELETE, "Delete datasources"),

    # Users
    _define(Resource.USER, Action.READ, "View users"),
    _define(Resource.USER, Action.CREATE, "Create users"),
    _define(Resource.USER, Action.UPDATE, "Edit users"),
    _define(Resource.USER, Action.DELETE, "Delete users"),
    _define(Resource.USER, Action.ASSIGN_ROLE, "Assign roles to users"),
    _define(Resource.USER, Action.REMOVE_ROLE, "Remove roles from users"),

    # Roles and permissions
    _define(Resource.ROLE, Action.READ, "View roles"),
    _define(Resource.ROLE, Action.CREATE, "Create roles"),
    _define(Resource.ROLE, Action.UPDATE, "Edit roles"),
    _define(Resource.ROLE, Action.DELETE, "Delete roles"),
    _define(Resource.PERMISSION, Action.READ, "View the permission catalog"),

    # Groups
    _define(Resource.GROUP, Action.READ, "View groups"),
    _define(Resource.GROUP, Action.CREATE, "Create groups"),
    _define(Resource.GROUP, Action.UPDATE, "Edit groups"),
    _define(Resource.GROUP, Action.DELETE, "Delete groups"),
    _define(Resource.GROUP, Action.MANAGE_MEMBERS, "Add and remove group members"),
    _define(Resource.GROUP, Action.ASSIGN_ROLE, "Assign roles to groups"),

    # System
    _define(Resource.SYSTEM, Action.ADMIN, "Full system access"),
    _define(Resource.SYSTEM, Action.AUDIT, "View audit logs"),
])


def get_all_permissions() -> list[str]:
    """Get all catalog permission strings."""
    return list(PERMISSION_DEFINITIONS.keys())
