import uuid

from pydantic import BaseModel, Field

from worklane.models.enums import PermissionCategory, ResourceKind

class PermissionCreateIn(BaseModel):
    name: str = Field(pattern=r"^[A-Z][A-Z0-9_]*$", max_length=100)
    description: str | None = None
    category: PermissionCategory

class PermissionOut(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    category: PermissionCategory

class AccessCheckOut(BaseModel):
    resource_kind: ResourceKind
    resource_id: uuid.UUID
    permission: str
    allowed: bool

class EffectivePermissionsOut(BaseModel):
    permissions: list[str]

class RoleNameOut(BaseModel):
    role: str | None
