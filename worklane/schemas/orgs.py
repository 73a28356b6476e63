import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

class OrgCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str | None = None

class OrgOut(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    role: str | None = None

class InviteIn(BaseModel):
    email: EmailStr
    role_id: uuid.UUID

class MemberRoleIn(BaseModel):
    role_id: uuid.UUID

class MemberOut(BaseModel):
    user_id: uuid.UUID
    org_id: uuid.UUID
    email: str | None = None
    role_id: uuid.UUID
    role: str
    joined_at: datetime | None = None
