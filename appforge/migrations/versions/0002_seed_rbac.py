"""Seed the permission catalog and system roles

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Runs the same idempotent seed as ``python -m appforge.db.seed``.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.orm import Session

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, Sequence[str], None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create catalog permissions and system roles that do not exist yet."""
    from appforge.db.seed import initialize_rbac

    session = Session(bind=op.get_bind())
    try:
        initialize_rbac(session)
        session.flush()
    finally:
        session.close()


def downgrade() -> None:
    """Remove seeded system roles and the unscoped catalog."""
    from appforge.core.rbac.permissions import PERMISSION_DEFINITIONS
    from appforge.core.rbac.roles import DEFAULT_ROLES

    connection = op.get_bind()
    roles = sa.table(
        "roles",
        sa.column("id", sa.Uuid()),
        sa.column("name", sa.String()),
        sa.column("is_system", sa.Boolean()),
        sa.column("parent_role_id", sa.Uuid()),
    )
    permissions = sa.table(
        "permissions",
        sa.column("id", sa.Uuid()),
        sa.column("resource", sa.String()),
        sa.column("action", sa.String()),
        sa.column("resource_id", sa.String()),
    )
    role_permissions = sa.table(
        "role_permissions",
        sa.column("role_id", sa.Uuid()),
        sa.column("permission_id", sa.Uuid()),
    )

    names = [config["name"] for config in DEFAULT_ROLES.values()]
    system_roles = sa.select(roles.c.id).where(
        sa.and_(roles.c.name.in_(names), roles.c.is_system == sa.true())
    )
    connection.execute(
        role_permissions.delete().where(role_permissions.c.role_id.in_(system_roles))
    )
    # Custom roles inheriting from a system role lose that parent edge
    connection.execute(
        roles.update().where(roles.c.parent_role_id.in_(system_roles)).values(parent_role_id=None)
    )
    connection.execute(
        roles.delete().where(sa.and_(roles.c.name.in_(names), roles.c.is_system == sa.true()))
    )

    for perm_str in PERMISSION_DEFINITIONS:
        resource, action = perm_str.split(":")
        catalog_row = sa.select(permissions.c.id).where(
            sa.and_(
                permissions.c.resource == resource,
                permissions.c.action == action,
                permissions.c.resource_id.is_(None),
            )
        )
        connection.execute(
            role_permissions.delete().where(role_permissions.c.permission_id.in_(catalog_row))
        )
        connection.execute(
            permissions.delete().where(
                sa.and_(
                    permissions.c.resource == resource,
                    permissions.c.action == action,
                    permissions.c.resource_id.is_(None),
                )
            )
        )
