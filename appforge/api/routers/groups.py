"""Group management API endpoints."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from appforge.api.deps import get_db
from appforge.api.middleware.audit import AuditLogger
from appforge.api.schemas.rbac import (
    GroupCreate,
    GroupMemberRequest,
    GroupMembershipResponse,
    GroupResponse,
    GroupRoleRequest,
    GroupRoleResponse,
    GroupUpdate,
    MessageResponse,
    UserSummary,
)
from appforge.core.rbac import AssignmentStore, GroupService, require_permission
from appforge.db.models import User

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    group_data: GroupCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = require_permission("group:create"),
):
    group = GroupService(db).create_group(
        name=group_data.name,
        organization_id=group_data.organization_id,
        description=group_data.description,
    )
    db.commit()

    AuditLogger(request, current_user).log(
        action="create",
        resource="group",
        resource_id=group.id,
        details={"name": group.name},
    )
    return GroupResponse.model_validate(group)


@router.get("", response_model=List[GroupResponse])
async def list_groups(
    db: Session = Depends(get_db),
    current_user: User = require_permission("group:read"),
    organization_id: Optional[UUID] = Query(None, description="Only groups of this organization"),
):
    groups = GroupService(db).list_groups(organization_id)
    return [GroupResponse.model_validate(g) for g in groups]


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = require_permission("group:read"),
):
    return GroupResponse.model_validate(GroupService(db).get_group(group_id))


@router.put("/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: UUID,
    group_data: GroupUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = require_permission("group:update"),
):
    changes = group_data.model_dump(exclude_unset=True)
    group = GroupService(db).update_group(group_id, **changes)
    db.commit()

    AuditLogger(request, current_user).log(
        action="update",
        resource="group",
        resource_id=group.id,
        details={"changed": sorted(changes)},
    )
    return GroupResponse.model_validate(group)


@router.delete("/{group_id}", response_model=MessageResponse)
async def delete_group(
    group_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = require_permission("group:delete"),
):
    GroupService(db).delete_group(group_id)
    db.commit()

    AuditLogger(request, current_user).log(action="delete", resource="group", resource_id=group_id)
    return MessageResponse(message="Group deleted")


# Membership

@router.post(
    "/{group_id}/users",
    response_model=GroupMembershipResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_user_to_group(
    group_id: UUID,
    member: GroupMemberRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = require_permission("group:manage_members"),
):
    membership = GroupService(db).add_user_to_group(group_id, member.user_id)
    db.commit()

    AuditLogger(request, current_user).log(
        action="add_user",
        resource="group",
        resource_id=group_id,
        details={"user_id": str(member.user_id)},
    )
    return GroupMembershipResponse.model_validate(membership)


@router.delete("/{group_id}/users/{user_id}", response_model=MessageResponse)
async def remove_user_from_group(
    group_id: UUID,
    user_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = require_permission("group:manage_members"),
):
    removed = GroupService(db).remove_user_from_group(group_id, user_id)
    db.commit()

    if not removed:
        return MessageResponse(message="User was not a member")

    AuditLogger(request, current_user).log(
        action="remove_user",
        resource="group",
        resource_id=group_id,
        details={"user_id": str(user_id)},
    )
    return MessageResponse(message="User removed from group")


@router.get("/{group_id}/users", response_model=List[UserSummary])
async def list_group_users(
    group_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = require_permission("group:read"),
):
    return [UserSummary.model_validate(u) for u in GroupService(db).list_group_users(group_id)]


# Group roles

@router.post(
    "/{group_id}/roles",
    response_model=GroupRoleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_role_to_group(
    group_id: UUID,
    role_data: GroupRoleRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = require_permission("group:assign_role"),
):
    assignment = AssignmentStore(db).assign_role_to_group(
        group_id, role_data.role_id, role_data.organization_id
    )
    db.commit()

    AuditLogger(request, current_user).log(
        action="group_role_assigned",
        resource="group_role",
        resource_id=group_id,
        details={
            "role_id": str(role_data.role_id),
            "organization_id": str(role_data.organization_id),
        },
    )
    return GroupRoleResponse.model_validate(assignment)


@router.delete("/{group_id}/roles/{role_id}", response_model=MessageResponse)
async def remove_role_from_group(
    group_id: UUID,
    role_id: UUID,
    request: Request,
    organization_id: UUID = Query(..., description="Organization the grant is scoped to"),
    db: Session = Depends(get_db),
    current_user: User = require_permission("group:assign_role"),
):
    removed = AssignmentStore(db).remove_role_from_group(group_id, role_id, organization_id)
    db.commit()

    if not removed:
        return MessageResponse(message="Role was not assigned to group")

    AuditLogger(request, current_user).log(
        action="group_role_removed",
        resource="group_role",
        resource_id=group_id,
        details={"role_id": str(role_id), "organization_id": str(organization_id)},
    )
    return MessageResponse(message="Role removed from group")


@router.get("/{group_id}/roles", response_model=List[GroupRoleResponse])
async def list_group_roles(
    group_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = require_permission("group:read"),
):
    GroupService(db).get_group(group_id)
    assignments = AssignmentStore(db).list_assignments_for_group(group_id)
    return [GroupRoleResponse.model_validate(a) for a in assignments]
