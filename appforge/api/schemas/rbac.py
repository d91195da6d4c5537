"""Request and response schemas for the RBAC and group endpoints."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import AliasChoices, BaseModel, Field, field_validator

PERMISSION_PATTERN = r"^[a-z][a-z0-9_]*:[a-z][a-z0-9_]*$"


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# Permissions

class PermissionResponse(BaseModel):
    id: UUID
    key: str
    resource: str
    action: str
    resource_id: Optional[str] = None
    description: Optional[str] = None

    class Config:
        from_attributes = True


class RolePermissionsResponse(BaseModel):
    role_id: UUID
    permissions: List[PermissionResponse]


# Roles

class RoleSummary(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    is_system: bool
    parent_role_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class RoleResponse(RoleSummary):
    permissions: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("permission_keys", "permissions"),
    )
    children: List[RoleSummary] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)
    parent_role_id: Optional[UUID] = None


class RoleUpdate(BaseModel):
    """Only fields present in the request body are changed; ``parent_role_id: null`` clears the parent."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: Optional[List[str]] = None
    parent_role_id: Optional[UUID] = None

    @field_validator("name", "permissions")
    @classmethod
    def reject_null(cls, v):
        """Omit a field to leave it unchanged; null is not a value for it."""
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


# User assignments

class RoleAssignmentRequest(BaseModel):
    user_id: UUID
    role_id: UUID
    resource_id: Optional[str] = Field(None, min_length=1, max_length=255)


class AssignmentResponse(BaseModel):
    id: UUID
    user_id: UUID
    role_id: UUID
    resource_id: Optional[str] = None
    assigned_by: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserRoleEntry(BaseModel):
    role: RoleSummary
    resource_id: Optional[str] = None
    group_id: Optional[UUID] = None
    organization_id: Optional[UUID] = None


class UserRolesResponse(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None
    roles: List[UserRoleEntry]
    permissions: List[str]


class CheckPermissionRequest(BaseModel):
    permission: str = Field(..., pattern=PERMISSION_PATTERN, description="resource:action")
    user_id: Optional[UUID] = Field(None, description="Defaults to the caller")
    resource_id: Optional[str] = None
    organization_id: Optional[UUID] = None


class CheckPermissionResponse(BaseModel):
    user_id: UUID
    permission: str
    resource_id: Optional[str] = None
    has_permission: bool


# Groups

class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    organization_id: UUID


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class GroupResponse(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GroupMemberRequest(BaseModel):
    user_id: UUID


class GroupMembershipResponse(BaseModel):
    id: UUID
    group_id: UUID
    user_id: UUID
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True


class GroupRoleRequest(BaseModel):
    role_id: UUID
    organization_id: UUID


class GroupRoleResponse(BaseModel):
    id: UUID
    group_id: UUID
    role_id: UUID
    organization_id: UUID
    role: Optional[RoleSummary] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
