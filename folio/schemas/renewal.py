from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from folio.core.models import RenewalStatus
from folio.schemas import CamelConfig

class Renewal(BaseModel):
    id: str
    borrowal_id: str
    book_id: str
    user_id: str
    book_title: Optional[str] = None
    user_name: Optional[str] = None
    current_due_date: datetime
    requested_days: int
    status: RenewalStatus
    created_at: datetime
    processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    rejection_reason: Optional[str] = None

    class Config(CamelConfig):
        pass
