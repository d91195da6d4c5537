"""Group administration service."""

import logging
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appforge.core.errors import ConflictError, NotFoundError
from appforge.db.models import Group, GroupMembership, Organization, User

from .graph import UNSET

logger = logging.getLogger(__name__)


class GroupService:
    """CRUD for groups and their memberships within organizations."""

    def __init__(self, db: Session):
        self.db = db

    def create_group(
        self,
        name: str,
        organization_id: UUID,
        description: Optional[str] = None,
    ) -> Group:
        """
        Create a group in an organization.

        Raises:
            NotFoundError: If the organization does not exist
            ConflictError: If the organization already has a group with this name
        """
        org = self.db.query(Organization).filter(Organization.id == organization_id).first()
        if not org:
            raise NotFoundError("Organization", organization_id)

        group = Group(name=name, description=description, organization_id=organization_id)
        try:
            with self.db.begin_nested():
                self.db.add(group)
                self.db.flush()
        except IntegrityError as e:
            raise ConflictError(f"Group '{name}' already exists in organization {organization_id}") from e

        logger.info("Created group %s (%s) in organization %s", name, group.id, organization_id)
        return group

    def list_groups(self, organization_id: Optional[UUID] = None) -> List[Group]:
        query = self.db.query(Group)
        if organization_id is not None:
            query = query.filter(Group.organization_id == organization_id)
        return query.order_by(Group.name).all()

    def get_group(self, group_id: UUID) -> Group:
        group = self.db.query(Group).filter(Group.id == group_id).first()
        if not group:
            raise NotFoundError("Group", group_id)
        return group

    def update_group(self, group_id: UUID, *, name: Any = UNSET, description: Any = UNSET) -> Group:
        """
        Update the fields that were passed.

        Raises:
            NotFoundError: If the group does not exist
            ConflictError: If the organization already has a group with the new name
        """
        group = self.get_group(group_id)
        organization_id = group.organization_id
        new_name = group.name if name is UNSET else name

        existing = self._find_group(organization_id, new_name)
        if existing is not None and existing.id != group_id:
            raise ConflictError(f"Group '{new_name}' already exists in organization {organization_id}")

        try:
            with self.db.begin_nested():
                group.name = new_name
                if description is not UNSET:
                    group.description = description
                self.db.flush()
        except IntegrityError as e:
            raise ConflictError(f"Group '{new_name}' already exists in organization {organization_id}") from e
        return group

    def delete_group(self, group_id: UUID) -> None:
        """Delete a group along with its memberships and role grants."""
        group = self.get_group(group_id)
        self.db.delete(group)
        self.db.flush()
        logger.info("Deleted group %s (%s)", group.name, group_id)

    # Membership

    def add_user_to_group(self, group_id: UUID, user_id: UUID) -> GroupMembership:
        """Add a user to a group. Adding an existing member returns the membership."""
        self.get_group(group_id)
        if self.db.query(User.id).filter(User.id == user_id).first() is None:
            raise NotFoundError("User", user_id)

        existing = self._find_membership(group_id, user_id)
        if existing:
            return existing

        membership = GroupMembership(group_id=group_id, user_id=user_id)
        try:
            with self.db.begin_nested():
                self.db.add(membership)
                self.db.flush()
        except IntegrityError:
            existing = self._find_membership(group_id, user_id)
            if existing is None:
                raise
            return existing

        logger.info("Added user %s to group %s", user_id, group_id)
        return membership

    def remove_user_from_group(self, group_id: UUID, user_id: UUID) -> bool:
        membership = self._find_membership(group_id, user_id)
        if not membership:
            return False
        self.db.delete(membership)
        self.db.flush()
        logger.info("Removed user %s from group %s", user_id, group_id)
        return True

    def list_group_users(self, group_id: UUID) -> List[User]:
        self.get_group(group_id)
        return self.db.query(User).join(
            GroupMembership, GroupMembership.user_id == User.id
        ).filter(GroupMembership.group_id == group_id).order_by(User.email).all()

    def list_groups_for_user(self, user_id: UUID) -> List[Group]:
        return self.db.query(Group).join(
            GroupMembership, GroupMembership.group_id == Group.id
        ).filter(GroupMembership.user_id == user_id).order_by(Group.name).all()

    def _find_group(self, organization_id: UUID, name: str) -> Optional[Group]:
        return self.db.query(Group).filter(
            and_(Group.organization_id == organization_id, Group.name == name)
        ).first()

    def _find_membership(self, group_id: UUID, user_id: UUID) -> Optional[GroupMembership]:
        return self.db.query(GroupMembership).filter(
            and_(
                GroupMembership.group_id == group_id,
                GroupMembership.user_id == user_id,
            )
        ).first()
