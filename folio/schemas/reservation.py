from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from folio.core.models import ReservationStatus
from folio.schemas import CamelConfig

class Reservation(BaseModel):
    id: str
    book_id: str
    user_id: str
    book_title: Optional[str] = None
    user_name: Optional[str] = None
    status: ReservationStatus
    position: Optional[int] = None
    created_at: datetime
    fulfilled_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    borrowal_id: Optional[str] = None

    class Config(CamelConfig):
        pass
