"""Permission catalog service.

The catalog is written once at bootstrap and read-only afterwards; no
deletion is exposed.
"""

import logging
from typing import Iterable, List, Optional, Union

from sqlalchemy import and_
from sqlalchemy.orm import Session

from appforge.db.models import Permission
from .permissions import PERMISSION_DEFINITIONS, PermissionKey, parse_permission

logger = logging.getLogger(__name__)


class PermissionCatalog:
    """Seeds and reads the global (resource, action) catalog."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: Union[str, PermissionKey]) -> Optional[Permission]:
        """Return the global catalog row for ``key``, if any."""
        key = parse_permission(key)
        return self.db.query(Permission).filter(
            and_(
                Permission.resource == key.resource,
                Permission.action == key.action,
                Permission.resource_id.is_(None),
            )
        ).first()

    def seed(self, definitions: Optional[dict[str, str]] = None) -> List[Permission]:
        """
        Create the catalog permissions that do not exist yet.

        Idempotent: each pair is looked up by (resource, action,
        resource_id=None) before insert, so re-running never duplicates.

        Args:
            definitions: Mapping of "resource:action" to description.
                Defaults to the built-in catalog.

        Returns:
            The catalog rows, existing and newly created
        """
        definitions = definitions if definitions is not None else PERMISSION_DEFINITIONS
        rows = []
        created = 0

        for perm_str, description in definitions.items():
            key = PermissionKey.from_string(perm_str)
            existing = self.get(key)
            if existing:
                rows.append(existing)
                continue

            permission = Permission(
                resource=key.resource,
                action=key.action,
                resource_id=None,
                description=description,
            )
            self.db.add(permission)
            rows.append(permission)
            created += 1

        self.db.flush()
        logger.info("Permission catalog seeded: %d created, %d total", created, len(rows))
        return rows

    def list_all(self) -> List[Permission]:
        """All permissions ordered by (resource, action) for display."""
        return self.db.query(Permission).order_by(
            Permission.resource, Permission.action, Permission.resource_id
        ).all()

    def resolve(self, keys: Iterable[Union[str, PermissionKey]]) -> List[Permission]:
        """
        Map permission keys to global catalog rows.

        Malformed or unknown keys are skipped so role definitions survive
        catalog changes.
        """
        resolved: dict[PermissionKey, Permission] = {}
        for raw in keys:
            try:
                key = parse_permission(raw)
            except ValueError:
                logger.debug("Ignoring malformed permission key %r", raw)
                continue
            if key in resolved:
                continue
            permission = self.get(key)
            if permission is None:
                logger.debug("Ignoring permission %s: not in catalog", key)
                continue
            resolved[key] = permission
        return list(resolved.values())
