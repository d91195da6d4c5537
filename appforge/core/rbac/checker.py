"""Permission checking utilities for AppForge.

The gate is the request-time enforcement point: it takes an identity that
was already verified upstream and a list of ``"resource:action"``
requirements, and lets the request through when the identity holds any one
of them. It only reads.
"""

import logging
from typing import Iterable, List, Optional, Union
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from appforge.api.deps import get_db, get_optional_user
from appforge.core.errors import ForbiddenError, UnauthenticatedError
from appforge.db.models import User
from .permissions import PermissionKey, parse_permission
from .resolver import PermissionResolver

logger = logging.getLogger(__name__)

PermissionInput = Union[str, PermissionKey]


class PermissionChecker:
    """Checks membership against an already-resolved permission set."""

    def __init__(self, user_permissions: Iterable[PermissionInput]):
        """
        Initialize with a user's permissions.

        Args:
            user_permissions: Permission keys or "resource:action" strings
        """
        self.permissions = frozenset(parse_permission(p) for p in user_permissions)

    def has_permission(self, permission: PermissionInput) -> bool:
        """Check if user has a specific permission."""
        return parse_permission(permission) in self.permissions

    def has_any_permission(self, permissions: Iterable[PermissionInput]) -> bool:
        """Check if user has any of the given permissions."""
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, permissions: Iterable[PermissionInput]) -> bool:
        """Check if user has all of the given permissions."""
        return all(self.has_permission(p) for p in permissions)


class AuthorizationGate:
    """Allows or rejects a request based on the resolver's answer."""

    def __init__(self, resolver: PermissionResolver):
        self.resolver = resolver

    def authorize(
        self,
        user: Optional[User],
        required: Iterable[PermissionInput],
        *,
        resource_id: Optional[str] = None,
        organization_id: Optional[UUID] = None,
    ) -> PermissionKey:
        """
        Check that ``user`` holds at least one of ``required``.

        Returns:
            The first required permission the user holds

        Raises:
            UnauthenticatedError: If there is no identity
            ForbiddenError: If the user holds none of the permissions, or
                resolving them failed
        """
        keys = [parse_permission(p) for p in required]
        required_strs = [str(k) for k in keys]

        if user is None:
            raise UnauthenticatedError()

        try:
            checker = PermissionChecker(
                self.resolver.user_permissions(user.id, resource_id, organization_id)
            )
        except Exception:
            logger.exception("Permission resolution failed for user %s; denying", user.id)
            raise ForbiddenError(required_strs)

        for key in keys:
            if checker.has_permission(key):
                return key

        logger.info(
            "Denied user %s: requires any of %s (scope=%s)",
            user.id,
            ", ".join(required_strs),
            resource_id or "global",
        )
        raise ForbiddenError(required_strs)


def get_resolver(db: Session = Depends(get_db)) -> PermissionResolver:
    """Per-request resolver; FastAPI shares it across one request's dependencies."""
    return PermissionResolver(db)


class PermissionDependency:
    """
    FastAPI dependency for permission checking.

    Resolves to the authenticated user when the check passes.

    Usage:
        @router.get("/roles")
        def list_roles(current_user: User = Depends(PermissionDependency("role:read"))):
            ...

        @router.get("/pages/{page_id}")
        def get_page(
            page_id: str,
            current_user: User = Depends(PermissionDependency("page:read", resource_param="page_id")),
        ):
            ...
    """

    def __init__(
        self,
        *permissions: PermissionInput,
        resource_param: Optional[str] = None,
        organization_param: Optional[str] = None,
    ):
        # Parse now so a typo fails at import time, not on first request
        self.permissions: List[PermissionKey] = [parse_permission(p) for p in permissions]
        self.resource_param = resource_param
        self.organization_param = organization_param

    def _param(self, request: Request, name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        return request.path_params.get(name) or request.query_params.get(name)

    def __call__(
        self,
        request: Request,
        user: Optional[User] = Depends(get_optional_user),
        resolver: PermissionResolver = Depends(get_resolver),
    ) -> User:
        resource_id = self._param(request, self.resource_param)
        organization_id = self._param(request, self.organization_param)
        if organization_id is not None:
            try:
                organization_id = UUID(str(organization_id))
            except ValueError:
                raise ForbiddenError([str(p) for p in self.permissions])

        granted = AuthorizationGate(resolver).authorize(
            user,
            self.permissions,
            resource_id=resource_id,
            organization_id=organization_id,
        )
        request.state.granted_permission = str(granted)
        return user


def require_permission(*permissions: PermissionInput, **kwargs):
    """
    Dependency marker requiring any one of the given permissions.

    Usage:
        @router.post("/roles")
        def create_role(current_user: User = require_permission("role:create")):
            ...
    """
    return Depends(PermissionDependency(*permissions, **kwargs))
