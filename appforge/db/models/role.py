import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Table, Text, Uuid
from sqlalchemy.orm import relationship

from appforge.db.base import Base


# Direct permission set of a role (many-to-many)
role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Uuid(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Uuid(as_uuid=True), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Role(Base):
    """
    Named role with a single optional parent.

    A role grants its direct permissions plus everything its parent chain
    grants. System roles are seeded at bootstrap and cannot be deleted.
    """
    __tablename__ = "roles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    is_system = Column(Boolean, default=False, nullable=False)
    parent_role_id = Column(Uuid(as_uuid=True), ForeignKey("roles.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    parent = relationship("Role", remote_side=[id], back_populates="children")
    children = relationship("Role", back_populates="parent", order_by="Role.name")
    permissions = relationship(
        "Permission",
        secondary=role_permissions,
        back_populates="roles",
    )
    user_assignments = relationship("UserRoleAssignment", back_populates="role", cascade="all, delete-orphan")
    group_assignments = relationship("GroupRoleAssignment", back_populates="role", cascade="all, delete-orphan")

    @property
    def permission_keys(self) -> list[str]:
        return sorted(p.key for p in self.permissions)

    def __repr__(self) -> str:
        return f"<Role {self.name}>"
