"""Error kinds raised by the AppForge RBAC core.

Every error carries the HTTP status the API layer answers with, so
``Unauthenticated`` (log in) and ``Forbidden`` (missing permission) always
reach callers as distinct outcomes.
"""

from typing import Optional


class RBACError(Exception):
    """Base class for classified RBAC failures."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(RBACError):
    """Raised when a role, permission, user, group or assignment is absent."""

    status_code = 404

    def __init__(self, entity: str, identifier: object):
        super().__init__(f"{entity} {identifier} not found")
        self.entity = entity
        self.identifier = identifier


class InvariantViolationError(RBACError):
    """Raised when a mutation would break a role-graph invariant."""

    status_code = 409


class CycleDetectedError(InvariantViolationError):
    """Raised when a parent chain loops back on itself."""

    def __init__(self, role_id: object, path: Optional[list] = None):
        super().__init__(f"Role hierarchy cycle detected at role {role_id}")
        self.role_id = role_id
        self.path = list(path or [])


class ConflictError(RBACError):
    """Raised when a unique key (e.g. a role name) is already taken."""

    status_code = 409


class UnauthenticatedError(RBACError):
    """Raised when a gated request carries no identity."""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(RBACError):
    """Raised when the identity lacks every permission the request requires."""

    status_code = 403

    def __init__(self, required: Optional[list[str]] = None, message: Optional[str] = None):
        required = list(required or [])
        if message is None:
            message = "Insufficient permissions"
            if required:
                message = f"{message}. Required: {', '.join(required)}"
        super().__init__(message)
        self.required = required
