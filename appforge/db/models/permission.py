"""Permission catalog model.

A row with ``resource_id`` NULL is a catalog-level (global) definition; a
non-NULL ``resource_id`` scopes the permission to one resource instance.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, Uuid, Index, UniqueConstraint, text
from sqlalchemy.orm import relationship

from appforge.db.base import Base
from appforge.db.models.role import role_permissions


class Permission(Base):
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("resource", "action", "resource_id", name="uq_permissions_resource_action_scope"),
        # NULLs never collide in a plain unique constraint, so global rows get their own index
        Index(
            "uq_permissions_global",
            "resource",
            "action",
            unique=True,
            sqlite_where=text("resource_id IS NULL"),
            postgresql_where=text("resource_id IS NULL"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    resource = Column(String(100), nullable=False, index=True)
    action = Column(String(100), nullable=False)
    resource_id = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    roles = relationship("Role", secondary=role_permissions, back_populates="permissions")

    @property
    def key(self) -> str:
        return f"{self.resource}:{self.action}"

    def __repr__(self) -> str:
        scope = f"@{self.resource_id}" if self.resource_id else ""
        return f"<Permission {self.key}{scope}>"
