"""Role assignment models.

``UserRoleAssignment`` grants a role to a user either globally
(``resource_id`` NULL) or for one resource instance. ``GroupRoleAssignment``
grants a role to every member of a group within one organization.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid, Index, UniqueConstraint, text
from sqlalchemy.orm import relationship

from appforge.db.base import Base


class UserRoleAssignment(Base):
    __tablename__ = "user_role_assignments"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", "resource_id", name="uq_user_role_assignments_scope"),
        Index(
            "uq_user_role_assignments_global",
            "user_id",
            "role_id",
            unique=True,
            sqlite_where=text("resource_id IS NULL"),
            postgresql_where=text("resource_id IS NULL"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(Uuid(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    resource_id = Column(String(255), nullable=True)

    # Who assigned this role
    assigned_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("User", foreign_keys=[user_id], back_populates="role_assignments")
    role = relationship("Role", back_populates="user_assignments")
    assigner = relationship("User", foreign_keys=[assigned_by])

    def __repr__(self) -> str:
        return f"<UserRoleAssignment user={self.user_id} role={self.role_id} scope={self.resource_id}>"


class GroupRoleAssignment(Base):
    __tablename__ = "group_role_assignments"
    __table_args__ = (
        UniqueConstraint("group_id", "role_id", "organization_id", name="uq_group_role_assignments_scope"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(Uuid(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(
        Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    group = relationship("Group", back_populates="role_assignments")
    role = relationship("Role", back_populates="group_assignments")

    def __repr__(self) -> str:
        return f"<GroupRoleAssignment group={self.group_id} role={self.role_id} org={self.organization_id}>"
