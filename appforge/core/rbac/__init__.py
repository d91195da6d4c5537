"""RBAC (Role-Based Access Control) module for AppForge.

This module defines the permission catalog, the role graph, role assignments,
the permission resolver and the request-time authorization gate.
"""

from .permissions import PermissionKey, Resource, Action, PERMISSION_DEFINITIONS, parse_permission
from .roles import DEFAULT_ROLES, ADMINISTRATOR_ROLE
from .catalog import PermissionCatalog
from .graph import RoleGraph, UNSET
from .assignments import AssignmentStore
from .groups import GroupService
from .resolver import PermissionResolver, UserWithRoles
from .checker import (
    AuthorizationGate,
    PermissionChecker,
    PermissionDependency,
    get_resolver,
    require_permission,
)

__all__ = [
    "PermissionKey",
    "Resource",
    "Action",
    "PERMISSION_DEFINITIONS",
    "parse_permission",
    "DEFAULT_ROLES",
    "ADMINISTRATOR_ROLE",
    "PermissionCatalog",
    "RoleGraph",
    "UNSET",
    "AssignmentStore",
    "GroupService",
    "PermissionResolver",
    "UserWithRoles",
    "AuthorizationGate",
    "PermissionChecker",
    "PermissionDependency",
    "get_resolver",
    "require_permission",
]
