import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from worklane.models.enums import TaskStatus

class TaskCreateIn(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    # needs ASSIGN_TASK on the project
    assigned_to: uuid.UUID | None = None

class TaskUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    status: TaskStatus | None = None
    assigned_to: uuid.UUID | None = None

class TaskOut(BaseModel):
    id: uuid.UUID
    org_id: uuid.UUID
    project_id: uuid.UUID
    title: str
    status: TaskStatus
    created_by: uuid.UUID
    assigned_to: uuid.UUID | None
    created_at: datetime | None = None
    updated_at: datetime | None = None
