from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from folio.core.models import BorrowStatus
from folio.schemas import CamelConfig

class Borrowal(BaseModel):
    id: str
    book_id: str
    user_id: str
    borrowed_at: datetime
    due_date: datetime
    returned_at: Optional[datetime] = None
    status: BorrowStatus
    renewal_count: int = 0
    is_overdue: bool = False

    class Config(CamelConfig):
        pass
