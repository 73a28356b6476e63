import uuid
from datetime import datetime

from pydantic import BaseModel

class AuditLogOut(BaseModel):
    id: uuid.UUID
    actor_id: uuid.UUID
    action: str
    resource_type: str
    resource_id: str | None
    details: dict | None
    created_at: datetime
