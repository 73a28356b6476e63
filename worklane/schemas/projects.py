import uuid
from datetime import datetime

from pydantic import BaseModel, Field

class ProjectCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)

class ProjectUpdateIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)

class ProjectOut(BaseModel):
    id: uuid.UUID
    org_id: uuid.UUID
    name: str

class OverrideIn(BaseModel):
    permission: str
    granted: bool

class GrantIn(BaseModel):
    granted: bool

class ProjectMemberIn(BaseModel):
    user_id: uuid.UUID
    role_id: uuid.UUID
    overrides: list[OverrideIn] = Field(default_factory=list)

class ProjectMemberUpdateIn(BaseModel):
    role_id: uuid.UUID | None = None
    overrides: list[OverrideIn] | None = None

class ProjectMemberOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    project_id: uuid.UUID
    role_id: uuid.UUID
    role: str
    overrides: dict[str, bool]
    joined_at: datetime | None = None
