"""Permission resolver.

Computes effective permission sets and answers user-level authorization
queries.

A role's effective set is its direct (resource, action) pairs unioned with
its parent's effective set, recursively. A user's aggregate set is the union
of the effective sets of every role that applies to the query:

- direct assignments that are global, or scoped to the queried resource
- roles granted to any group the user belongs to, when the query names no
  organization or names the group grant's organization

One resolver is meant to live for one request. Results are memoized on the
instance, so role or assignment changes made after a lookup are not seen by
that instance.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple, Union
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.orm import Session

from appforge.core.errors import CycleDetectedError, NotFoundError
from appforge.db.models import (
    GroupMembership,
    GroupRoleAssignment,
    Permission,
    Role,
    User,
    UserRoleAssignment,
)
from .permissions import Action, PermissionKey, Resource

logger = logging.getLogger(__name__)

ScopeKey = Tuple[UUID, Optional[str], Optional[UUID]]


@dataclass
class UserWithRoles:
    """Read projection of a user with their roles and permissions."""
    user: User
    assignments: List[UserRoleAssignment] = field(default_factory=list)
    group_assignments: List[GroupRoleAssignment] = field(default_factory=list)
    permissions: List[str] = field(default_factory=list)

    @property
    def roles(self) -> List[Role]:
        """Distinct roles held directly or through groups, in assignment order."""
        seen = {}
        for assignment in [*self.assignments, *self.group_assignments]:
            seen.setdefault(assignment.role_id, assignment.role)
        return list(seen.values())


class PermissionResolver:
    """Resolves inherited and aggregated permissions for roles and users."""

    def __init__(self, db: Session):
        self.db = db
        self._role_cache: Dict[UUID, FrozenSet[PermissionKey]] = {}
        self._user_cache: Dict[ScopeKey, FrozenSet[PermissionKey]] = {}

    def effective_permissions(self, role_id: UUID) -> FrozenSet[PermissionKey]:
        """
        Direct permissions of a role plus everything inherited from its parents.

        Scoped permission rows contribute their (resource, action) pair only.
        An unknown role yields an empty set.

        Raises:
            CycleDetectedError: If the parent chain revisits a role
        """
        return self._effective(role_id, ())

    def _effective(self, role_id: UUID, path: Tuple[UUID, ...]) -> FrozenSet[PermissionKey]:
        if role_id in self._role_cache:
            return self._role_cache[role_id]
        if role_id in path:
            raise CycleDetectedError(role_id, path=[*path, role_id])

        role = self.db.query(Role).filter(Role.id == role_id).first()
        if role is None:
            return frozenset()

        keys = {PermissionKey(p.resource, p.action) for p in role.permissions}
        if role.parent_role_id is not None:
            keys |= self._effective(role.parent_role_id, (*path, role_id))

        result = frozenset(keys)
        self._role_cache[role_id] = result
        return result

    def get_effective_permissions(self, role_id: UUID) -> List[Permission]:
        """
        Effective permissions of a role as catalog rows, ordered by (resource, action).

        Raises:
            NotFoundError: If the role does not exist
            CycleDetectedError: If the parent chain revisits a role
        """
        if self.db.query(Role.id).filter(Role.id == role_id).first() is None:
            raise NotFoundError("Role", role_id)

        keys = self.effective_permissions(role_id)
        if not keys:
            return []

        catalog = self.db.query(Permission).filter(
            Permission.resource_id.is_(None)
        ).order_by(Permission.resource, Permission.action).all()
        return [p for p in catalog if PermissionKey(p.resource, p.action) in keys]

    def applicable_role_ids(
        self,
        user_id: UUID,
        resource_id: Optional[str] = None,
        organization_id: Optional[UUID] = None,
    ) -> List[UUID]:
        """Ids of the roles that apply to a query, direct grants first."""
        role_ids: Dict[UUID, None] = {}

        direct = self.db.query(
            UserRoleAssignment.role_id, UserRoleAssignment.resource_id
        ).filter(UserRoleAssignment.user_id == user_id).all()
        for role_id, scope in direct:
            if scope is None or (resource_id is not None and scope == resource_id):
                role_ids.setdefault(role_id)

        via_groups = self.db.query(
            GroupRoleAssignment.role_id, GroupRoleAssignment.organization_id
        ).join(
            GroupMembership, GroupMembership.group_id == GroupRoleAssignment.group_id
        ).filter(GroupMembership.user_id == user_id).all()
        for role_id, org_id in via_groups:
            if organization_id is None or org_id == organization_id:
                role_ids.setdefault(role_id)

        return list(role_ids)

    def user_permissions(
        self,
        user_id: UUID,
        resource_id: Optional[str] = None,
        organization_id: Optional[UUID] = None,
    ) -> FrozenSet[PermissionKey]:
        """Aggregate permission set of a user for one query scope."""
        scope: ScopeKey = (user_id, resource_id, organization_id)
        if scope in self._user_cache:
            return self._user_cache[scope]

        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None or not user.is_active:
            result: FrozenSet[PermissionKey] = frozenset()
        else:
            keys = set()
            for role_id in self.applicable_role_ids(user_id, resource_id, organization_id):
                keys |= self.effective_permissions(role_id)
            result = frozenset(keys)

        self._user_cache[scope] = result
        return result

    def has_permission(
        self,
        user_id: UUID,
        resource: Union[str, Resource],
        action: Union[str, Action],
        resource_id: Optional[str] = None,
        organization_id: Optional[UUID] = None,
    ) -> bool:
        """
        Whether a user holds ``resource:action`` for the given scope.

        Without ``resource_id`` only globally scoped assignments apply.
        Inactive and unknown users hold nothing.
        """
        key = PermissionKey.of(resource, action)
        return key in self.user_permissions(user_id, resource_id, organization_id)

    def get_user_with_roles(self, user_id: UUID) -> UserWithRoles:
        """
        Load a user with direct assignments, group grants and global permissions.

        Raises:
            NotFoundError: If the user does not exist
        """
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User", user_id)

        assignments = self.db.query(UserRoleAssignment).filter(
            UserRoleAssignment.user_id == user_id
        ).order_by(UserRoleAssignment.created_at).all()

        group_assignments = self.db.query(GroupRoleAssignment).join(
            GroupMembership,
            and_(
                GroupMembership.group_id == GroupRoleAssignment.group_id,
                GroupMembership.user_id == user_id,
            ),
        ).order_by(GroupRoleAssignment.created_at).all()

        permissions = sorted(str(k) for k in self.user_permissions(user_id))
        return UserWithRoles(
            user=user,
            assignments=assignments,
            group_assignments=group_assignments,
            permissions=permissions,
        )
