from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from folio.core.models import EventType, Level
from folio.schemas import CamelConfig

class Notification(BaseModel):
    id: str
    user_id: str = Field(..., min_length=1, max_length=50)
    type: EventType
    level: Level
    message: str = Field(..., min_length=1)
    payload: dict = Field(default_factory=dict)
    created_at: datetime
    is_read: bool = Field(default=False)
    dispatched_at: Optional[datetime] = None

    class Config(CamelConfig):
        pass
