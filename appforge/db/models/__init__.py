"""Database models for AppForge RBAC."""

from appforge.db.models.org import Organization
from appforge.db.models.user import User
from appforge.db.models.role import Role, role_permissions
from appforge.db.models.permission import Permission
from appforge.db.models.assignment import UserRoleAssignment, GroupRoleAssignment
from appforge.db.models.group import Group, GroupMembership

__all__ = [
    "Organization",
    "User",
    "Role",
    "role_permissions",
    "Permission",
    "UserRoleAssignment",
    "GroupRoleAssignment",
    "Group",
    "GroupMembership",
]
