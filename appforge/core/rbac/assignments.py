"""Role assignment store.

Users hold roles globally (``resource_id`` None) or for one resource
instance; groups hold roles within one organization. Assigning is
idempotent: the store's unique constraints decide, and a duplicate insert
that loses a race is reported as success.
"""

import logging
from typing import Callable, List, Optional, TypeVar
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appforge.core.errors import NotFoundError
from appforge.db.models import (
    Group,
    GroupRoleAssignment,
    Organization,
    Role,
    User,
    UserRoleAssignment,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AssignmentStore:
    """Grants and revokes roles for users and groups."""

    def __init__(self, db: Session):
        self.db = db

    # User assignments

    def find_user_assignment(
        self,
        user_id: UUID,
        role_id: UUID,
        resource_id: Optional[str] = None,
    ) -> Optional[UserRoleAssignment]:
        scope = (
            UserRoleAssignment.resource_id.is_(None)
            if resource_id is None
            else UserRoleAssignment.resource_id == resource_id
        )
        return self.db.query(UserRoleAssignment).filter(
            and_(
                UserRoleAssignment.user_id == user_id,
                UserRoleAssignment.role_id == role_id,
                scope,
            )
        ).first()

    def assign_role_to_user(
        self,
        user_id: UUID,
        role_id: UUID,
        resource_id: Optional[str] = None,
        *,
        assigned_by: Optional[UUID] = None,
    ) -> UserRoleAssignment:
        """
        Grant a role to a user, globally or for one resource instance.

        Assigning a triple the user already holds returns the existing row.

        Raises:
            NotFoundError: If the user or role does not exist
        """
        self._require(User, user_id, "User")
        self._require(Role, role_id, "Role")

        existing = self.find_user_assignment(user_id, role_id, resource_id)
        if existing:
            return existing

        assignment = UserRoleAssignment(
            user_id=user_id,
            role_id=role_id,
            resource_id=resource_id,
            assigned_by=assigned_by,
        )
        assignment = self._insert_idempotent(
            assignment,
            lambda: self.find_user_assignment(user_id, role_id, resource_id),
        )
        logger.info(
            "Assigned role %s to user %s (scope=%s)",
            role_id,
            user_id,
            resource_id or "global",
        )
        return assignment

    def remove_role_from_user(
        self,
        user_id: UUID,
        role_id: UUID,
        resource_id: Optional[str] = None,
    ) -> bool:
        """
        Revoke exactly the matching (user, role, scope) grant.

        Returns:
            True if a grant was removed, False if none existed
        """
        assignment = self.find_user_assignment(user_id, role_id, resource_id)
        if not assignment:
            return False

        self.db.delete(assignment)
        self.db.flush()
        logger.info(
            "Removed role %s from user %s (scope=%s)",
            role_id,
            user_id,
            resource_id or "global",
        )
        return True

    def list_assignments_for_user(self, user_id: UUID) -> List[UserRoleAssignment]:
        return self.db.query(UserRoleAssignment).filter(
            UserRoleAssignment.user_id == user_id
        ).order_by(UserRoleAssignment.created_at).all()

    def has_any_holder(self, role_id: UUID) -> bool:
        """Whether any user holds the role in any scope."""
        return self.db.query(UserRoleAssignment.id).filter(
            UserRoleAssignment.role_id == role_id
        ).first() is not None

    # Group assignments

    def find_group_assignment(
        self,
        group_id: UUID,
        role_id: UUID,
        organization_id: UUID,
    ) -> Optional[GroupRoleAssignment]:
        return self.db.query(GroupRoleAssignment).filter(
            and_(
                GroupRoleAssignment.group_id == group_id,
                GroupRoleAssignment.role_id == role_id,
                GroupRoleAssignment.organization_id == organization_id,
            )
        ).first()

    def assign_role_to_group(
        self,
        group_id: UUID,
        role_id: UUID,
        organization_id: UUID,
    ) -> GroupRoleAssignment:
        """
        Grant a role to every member of a group within an organization.

        Raises:
            NotFoundError: If the group, role or organization does not exist
        """
        self._require(Group, group_id, "Group")
        self._require(Role, role_id, "Role")
        self._require(Organization, organization_id, "Organization")

        existing = self.find_group_assignment(group_id, role_id, organization_id)
        if existing:
            return existing

        assignment = GroupRoleAssignment(
            group_id=group_id,
            role_id=role_id,
            organization_id=organization_id,
        )
        assignment = self._insert_idempotent(
            assignment,
            lambda: self.find_group_assignment(group_id, role_id, organization_id),
        )
        logger.info("Assigned role %s to group %s in organization %s", role_id, group_id, organization_id)
        return assignment

    def remove_role_from_group(
        self,
        group_id: UUID,
        role_id: UUID,
        organization_id: UUID,
    ) -> bool:
        assignment = self.find_group_assignment(group_id, role_id, organization_id)
        if not assignment:
            return False

        self.db.delete(assignment)
        self.db.flush()
        logger.info("Removed role %s from group %s in organization %s", role_id, group_id, organization_id)
        return True

    def list_assignments_for_group(self, group_id: UUID) -> List[GroupRoleAssignment]:
        return self.db.query(GroupRoleAssignment).filter(
            GroupRoleAssignment.group_id == group_id
        ).order_by(GroupRoleAssignment.created_at).all()

    # Helpers

    def _require(self, model, entity_id: UUID, label: str) -> None:
        if self.db.query(model.id).filter(model.id == entity_id).first() is None:
            raise NotFoundError(label, entity_id)

    def _insert_idempotent(self, row: T, lookup: Callable[[], Optional[T]]) -> T:
        """
        Insert ``row`` inside a savepoint.

        A unique-constraint violation means a concurrent caller inserted the
        same grant first; that row is returned instead.
        """
        try:
            with self.db.begin_nested():
                self.db.add(row)
                self.db.flush()
        except IntegrityError:
            winner = lookup()
            if winner is None:
                raise
            logger.debug("Concurrent insert already created %r", winner)
            return winner
        return row
