"""RBAC administration API endpoints."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from appforge.api.deps import get_db, get_current_user, get_optional_user
from appforge.api.middleware.audit import AuditLogger
from appforge.api.schemas.rbac import (
    AssignmentResponse,
    CheckPermissionRequest,
    CheckPermissionResponse,
    MessageResponse,
    PermissionResponse,
    RoleAssignmentRequest,
    RoleCreate,
    RolePermissionsResponse,
    RoleResponse,
    RoleSummary,
    RoleUpdate,
    UserRoleEntry,
    UserRolesResponse,
)
from appforge.core.errors import NotFoundError
from appforge.core.rbac import (
    AssignmentStore,
    AuthorizationGate,
    PermissionCatalog,
    PermissionKey,
    PermissionResolver,
    RoleGraph,
    get_resolver,
    require_permission,
)
from appforge.db.models import User
from appforge.db.seed import initialize_rbac, is_bootstrapped

router = APIRouter(prefix="/rbac", tags=["rbac"])


def bootstrap_or_admin(
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
    resolver: PermissionResolver = Depends(get_resolver),
) -> Optional[User]:
    """Open until someone holds Administrator; ``system:admin`` afterwards."""
    if not is_bootstrapped(db):
        return user
    AuthorizationGate(resolver).authorize(user, ["system:admin"])
    return user


@router.post("/initialize", response_model=MessageResponse)
async def initialize(
    request: Request,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(bootstrap_or_admin),
):
    """Seed the permission catalog and system roles. Safe to call repeatedly."""
    roles = initialize_rbac(db)
    db.commit()

    AuditLogger(request, current_user).log(
        action="rbac_initialized",
        resource="system",
        details={"roles": sorted(r.name for r in roles.values())},
    )
    return MessageResponse(message="RBAC system initialized successfully")


# Roles

@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    db: Session = Depends(get_db),
    current_user: User = require_permission("role:read"),
):
    """List all roles ordered by name."""
    return [RoleResponse.model_validate(r) for r in RoleGraph(db).list_roles()]


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role_data: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = require_permission("role:create"),
):
    """Create a custom role. Unknown permission keys are ignored."""
    role = RoleGraph(db).create_role(
        name=role_data.name,
        description=role_data.description,
        permissions=role_data.permissions,
        parent_role_id=role_data.parent_role_id,
    )
    db.commit()
    db.refresh(role)

    AuditLogger(request, current_user).log(
        action="create",
        resource="role",
        resource_id=role.id,
        details={"name": role.name, "permissions": role.permission_keys},
    )
    return RoleResponse.model_validate(role)


@router.get("/roles/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = require_permission("role:read"),
):
    """Get a role with its direct permissions and child roles."""
    return RoleResponse.model_validate(RoleGraph(db).get_role(role_id))


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: UUID,
    role_data: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = require_permission("role:update"),
):
    """Update a role. A ``permissions`` list replaces the direct set."""
    changes = role_data.model_dump(exclude_unset=True)
    role = RoleGraph(db).update_role(role_id, **changes)
    db.commit()
    db.refresh(role)

    AuditLogger(request, current_user).log(
        action="update",
        resource="role",
        resource_id=role.id,
        details={"name": role.name, "changed": sorted(changes)},
    )
    return RoleResponse.model_validate(role)


@router.delete("/roles/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = require_permission("role:delete"),
):
    """Delete a custom role and every assignment of it."""
    graph = RoleGraph(db)
    name = graph.get_role(role_id).name
    graph.delete_role(role_id)
    db.commit()

    AuditLogger(request, current_user).log(
        action="delete",
        resource="role",
        resource_id=role_id,
        details={"name": name},
    )
    return MessageResponse(message="Role deleted successfully")


@router.get("/roles/{role_id}/permissions", response_model=RolePermissionsResponse)
async def get_role_permissions(
    role_id: UUID,
    current_user: User = require_permission("permission:read"),
    resolver: PermissionResolver = Depends(get_resolver),
):
    """Effective permissions of a role, inherited ones included."""
    permissions = resolver.get_effective_permissions(role_id)
    return RolePermissionsResponse(
        role_id=role_id,
        permissions=[PermissionResponse.model_validate(p) for p in permissions],
    )


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    db: Session = Depends(get_db),
    current_user: User = require_permission("permission:read"),
):
    """List the permission catalog."""
    return [PermissionResponse.model_validate(p) for p in PermissionCatalog(db).list_all()]


# User assignments

@router.post("/users/assign-role", response_model=AssignmentResponse)
async def assign_role(
    assignment_data: RoleAssignmentRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = require_permission("user:assign_role"),
):
    """Grant a role to a user, globally or for one resource. Idempotent."""
    assignment = AssignmentStore(db).assign_role_to_user(
        assignment_data.user_id,
        assignment_data.role_id,
        assignment_data.resource_id,
        assigned_by=current_user.id,
    )
    db.commit()

    AuditLogger(request, current_user).log(
        action="role_assigned",
        resource="user_role",
        resource_id=assignment_data.user_id,
        details={
            "role_id": str(assignment_data.role_id),
            "resource_id": assignment_data.resource_id,
        },
    )
    return AssignmentResponse.model_validate(assignment)


@router.post("/users/remove-role", response_model=MessageResponse)
async def remove_role(
    assignment_data: RoleAssignmentRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = require_permission("user:remove_role"),
):
    """Revoke one role grant from a user. Revoking a missing grant is a no-op."""
    if db.query(User.id).filter(User.id == assignment_data.user_id).first() is None:
        raise NotFoundError("User", assignment_data.user_id)

    removed = AssignmentStore(db).remove_role_from_user(
        assignment_data.user_id,
        assignment_data.role_id,
        assignment_data.resource_id,
    )
    db.commit()

    if removed:
        AuditLogger(request, current_user).log(
            action="role_removed",
            resource="user_role",
            resource_id=assignment_data.user_id,
            details={
                "role_id": str(assignment_data.role_id),
                "resource_id": assignment_data.resource_id,
            },
        )
        return MessageResponse(message="Role removed successfully")
    return MessageResponse(message="Role was not assigned")


@router.get("/users/{user_id}/roles", response_model=UserRolesResponse)
async def get_user_roles(
    user_id: UUID,
    current_user: User = require_permission("user:read"),
    resolver: PermissionResolver = Depends(get_resolver),
):
    """A user's direct and group-derived roles plus their global permissions."""
    projection = resolver.get_user_with_roles(user_id)

    entries = [
        UserRoleEntry(
            role=RoleSummary.model_validate(a.role),
            resource_id=a.resource_id,
        )
        for a in projection.assignments
    ]
    entries.extend(
        UserRoleEntry(
            role=RoleSummary.model_validate(g.role),
            group_id=g.group_id,
            organization_id=g.organization_id,
        )
        for g in projection.group_assignments
    )

    return UserRolesResponse(
        id=projection.user.id,
        email=projection.user.email,
        name=projection.user.name,
        roles=entries,
        permissions=projection.permissions,
    )


@router.post("/check-permission", response_model=CheckPermissionResponse)
async def check_permission(
    check: CheckPermissionRequest,
    current_user: User = Depends(get_current_user),
    resolver: PermissionResolver = Depends(get_resolver),
):
    """
    Check whether a user holds a permission.

    Any authenticated user may check themselves; checking someone else
    requires ``user:read``.
    """
    user_id = check.user_id or current_user.id
    if user_id != current_user.id:
        AuthorizationGate(resolver).authorize(current_user, ["user:read"])

    key = PermissionKey.from_string(check.permission)
    allowed = resolver.has_permission(
        user_id,
        key.resource,
        key.action,
        resource_id=check.resource_id,
        organization_id=check.organization_id,
    )
    return CheckPermissionResponse(
        user_id=user_id,
        permission=str(key),
        resource_id=check.resource_id,
        has_permission=allowed,
    )
