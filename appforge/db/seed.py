"""Database seeding for AppForge RBAC.

Creates the permission catalog and the built-in system roles, and can grant
the Administrator role to an existing user.
"""

import argparse
import logging
import sys
from typing import Dict, Optional

from sqlalchemy.orm import Session

from appforge.db.models import Role, User, UserRoleAssignment
from appforge.core.rbac.roles import ADMINISTRATOR_ROLE, DEFAULT_ROLES
from appforge.core.rbac.catalog import PermissionCatalog
from appforge.core.rbac.assignments import AssignmentStore
from appforge.core.errors import NotFoundError

logger = logging.getLogger(__name__)


def seed_default_roles(db: Session) -> Dict[str, Role]:
    """
    Create the 4 system roles, or top up their permission links.

    Roles are matched by name. Existing roles only gain missing links; links
    an administrator added are never removed.

    Returns:
        Dict mapping role key to Role object
    """
    catalog = PermissionCatalog(db)
    roles = {}

    for role_key, role_config in DEFAULT_ROLES.items():
        wanted = catalog.resolve(role_config["permissions"])
        existing = db.query(Role).filter(Role.name == role_config["name"]).first()

        if existing:
            have = {p.id for p in existing.permissions}
            missing = [p for p in wanted if p.id not in have]
            existing.permissions.extend(missing)
            if missing:
                logger.info("Added %d permission(s) to role %s", len(missing), existing.name)
            roles[role_key] = existing
            continue

        role = Role(
            name=role_config["name"],
            description=role_config["description"],
            is_system=role_config["is_system"],
        )
        role.permissions = wanted
        db.add(role)
        roles[role_key] = role
        logger.info("Created system role %s with %d permissions", role.name, len(wanted))

    db.flush()
    return roles


def initialize_rbac(db: Session) -> Dict[str, Role]:
    """
    Seed the permission catalog and the system roles.

    Idempotent; safe to run at every start-up and from migrations. The caller
    owns the transaction.
    """
    PermissionCatalog(db).seed()
    return seed_default_roles(db)


def is_bootstrapped(db: Session) -> bool:
    """Whether any user holds the Administrator role."""
    admin = db.query(Role).filter(Role.name == ADMINISTRATOR_ROLE).first()
    if admin is None:
        return False
    return AssignmentStore(db).has_any_holder(admin.id)


def assign_admin_role(db: Session, email: str) -> UserRoleAssignment:
    """
    Grant the Administrator role globally to the user with ``email``.

    Raises:
        NotFoundError: If no user has this email or the role is not seeded
    """
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise NotFoundError("User", email)

    admin = db.query(Role).filter(Role.name == ADMINISTRATOR_ROLE).first()
    if not admin:
        raise NotFoundError("Role", ADMINISTRATOR_ROLE)

    return AssignmentStore(db).assign_role_to_user(user.id, admin.id)


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="python -m appforge.db.seed",
        description="Seed the AppForge permission catalog and system roles.",
    )
    parser.add_argument(
        "--admin-email",
        help="Grant the Administrator role to the existing user with this email",
    )
    args = parser.parse_args(argv)

    from appforge.db.session import SessionLocal

    db = SessionLocal()
    try:
        roles = initialize_rbac(db)
        print(f"Seeded {len(roles)} system roles:")
        for role in roles.values():
            print(f"  - {role.name}: {len(role.permissions)} permissions")

        if args.admin_email:
            assign_admin_role(db, args.admin_email)
            print(f"\nGranted {ADMINISTRATOR_ROLE} to {args.admin_email}")

        db.commit()
        print("\nSeeding complete!")
        return 0

    except NotFoundError as e:
        db.rollback()
        print(f"Error: {e.message}")
        return 1
    finally:
        db.close()


# CLI script for seeding
if __name__ == "__main__":
    sys.exit(main())
