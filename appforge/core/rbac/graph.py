"""Role graph service.

Roles form single-parent chains: each role points at zero or one parent and
grants its direct permissions plus everything the chain above it grants.
Writes keep those chains acyclic; reads in the resolver still guard against
cycles left behind by out-of-band edits.
"""

import logging
from typing import Any, Iterable, List, Optional, Union
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appforge.core.errors import (
    ConflictError,
    CycleDetectedError,
    InvariantViolationError,
    NotFoundError,
)
from appforge.db.models import Role
from .catalog import PermissionCatalog
from .permissions import PermissionKey

logger = logging.getLogger(__name__)


class _Unset:
    """Marker for keyword arguments the caller did not pass."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()

PermissionInput = Union[str, PermissionKey]


class RoleGraph:
    """Create, update, delete and inspect roles and their parent edges."""

    def __init__(self, db: Session):
        self.db = db
        self.catalog = PermissionCatalog(db)

    def get_role(self, role_id: UUID) -> Role:
        """
        Get a role with its direct permissions and immediate children.

        Raises:
            NotFoundError: If the role does not exist
        """
        role = self.db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise NotFoundError("Role", role_id)
        return role

    def get_role_by_name(self, name: str) -> Optional[Role]:
        return self.db.query(Role).filter(Role.name == name).first()

    def list_roles(self) -> List[Role]:
        """All roles ordered by name."""
        return self.db.query(Role).order_by(Role.name).all()

    def ancestors(self, role_id: UUID) -> List[Role]:
        """
        Return the parent chain of a role, nearest parent first.

        Raises:
            NotFoundError: If the role does not exist
            CycleDetectedError: If the chain loops back on itself
        """
        role = self.get_role(role_id)
        chain: List[Role] = []
        seen = {role.id}
        parent_id = role.parent_role_id

        while parent_id is not None:
            if parent_id in seen:
                raise CycleDetectedError(parent_id, path=[r.id for r in chain])
            seen.add(parent_id)
            parent = self.db.query(Role).filter(Role.id == parent_id).first()
            if parent is None:
                break
            chain.append(parent)
            parent_id = parent.parent_role_id

        return chain

    def create_role(
        self,
        name: str,
        description: Optional[str] = None,
        permissions: Iterable[PermissionInput] = (),
        parent_role_id: Optional[UUID] = None,
        *,
        is_system: bool = False,
    ) -> Role:
        """
        Create a role.

        Permission keys missing from the catalog are ignored.

        Raises:
            ConflictError: If a role with this name exists
            NotFoundError: If the parent role does not exist
        """
        if self.get_role_by_name(name) is not None:
            raise ConflictError(f"Role '{name}' already exists")

        parent = self.get_role(parent_role_id) if parent_role_id is not None else None

        granted = self.catalog.resolve(permissions)
        role = Role(name=name, description=description, is_system=is_system)

        try:
            with self.db.begin_nested():
                self.db.add(role)
                role.parent = parent
                role.permissions = granted
                self.db.flush()
        except IntegrityError as e:
            raise ConflictError(f"Role '{name}' already exists") from e

        logger.info("Created role %s (%s) with %d permissions", role.name, role.id, len(role.permissions))
        return role

    def update_role(
        self,
        role_id: UUID,
        *,
        name: Any = UNSET,
        description: Any = UNSET,
        permissions: Any = UNSET,
        parent_role_id: Any = UNSET,
    ) -> Role:
        """
        Update the fields that were passed; everything else is left alone.

        The role row is locked for the rest of the transaction. Passing
        ``permissions`` replaces the whole direct set in one flush, so
        concurrent readers see either the old set or the new one.

        Raises:
            NotFoundError: If the role or the new parent does not exist
            InvariantViolationError: If a system role would be renamed
            CycleDetectedError: If the new parent is the role or one of its descendants
            ConflictError: If the new name is taken
        """
        role = self.db.query(Role).filter(Role.id == role_id).with_for_update().first()
        if not role:
            raise NotFoundError("Role", role_id)

        current_name = role.name
        new_name = current_name if name is UNSET else name

        if new_name != current_name:
            if role.is_system:
                raise InvariantViolationError(f"System role '{current_name}' cannot be renamed")
            existing = self.get_role_by_name(new_name)
            if existing is not None and existing.id != role_id:
                raise ConflictError(f"Role '{new_name}' already exists")

        parent = None
        if parent_role_id is not UNSET and parent_role_id is not None:
            parent = self.get_role(parent_role_id)
            self._check_parent_edge(role_id, parent_role_id)

        granted = self.catalog.resolve(permissions) if permissions is not UNSET else None

        # A failed flush rolls back only this savepoint
        try:
            with self.db.begin_nested():
                role.name = new_name
                if description is not UNSET:
                    role.description = description
                if parent_role_id is not UNSET:
                    role.parent = parent
                if granted is not None:
                    role.permissions = granted
                self.db.flush()
        except IntegrityError as e:
            raise ConflictError(f"Role '{new_name}' already exists") from e

        logger.info("Updated role %s (%s)", new_name, role_id)
        return role

    def delete_role(self, role_id: UUID) -> None:
        """
        Delete a role and every user and group assignment of it.

        Raises:
            NotFoundError: If the role does not exist
            InvariantViolationError: If the role is a system role or has child roles
        """
        role = self.get_role(role_id)

        if role.is_system:
            raise InvariantViolationError(f"System role '{role.name}' cannot be deleted")

        child_count = self.db.query(Role).filter(Role.parent_role_id == role.id).count()
        if child_count:
            raise InvariantViolationError(
                f"Role '{role.name}' is the parent of {child_count} role(s) and cannot be deleted"
            )

        # Detach from the parent so its loaded children collection stays current
        role.parent = None
        self.db.delete(role)
        self.db.flush()
        logger.info("Deleted role %s (%s)", role.name, role_id)

    def _check_parent_edge(self, role_id: UUID, parent_role_id: UUID) -> None:
        """Reject a parent edge that would close a loop."""
        path = [role_id]
        current: Optional[UUID] = parent_role_id

        while current is not None:
            if current in path:
                raise CycleDetectedError(role_id, path=path + [current])
            path.append(current)
            current = self.db.query(Role.parent_role_id).filter(Role.id == current).scalar()
