from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

class BorrowRequest(BaseModel):
    bookId: str = Field(..., min_length=1)
    userId: str = Field(..., min_length=1)
    dueDate: datetime

class ReturnRequest(BaseModel):
    bookId: str = Field(..., min_length=1)
    userId: str = Field(..., min_length=1)

class ReservationRequest(BaseModel):
    bookId: str = Field(..., min_length=1)
    userId: str = Field(..., min_length=1)
    bookTitle: str = Field(..., min_length=1)
    userName: str = Field(..., min_length=1)
    userEmail: Optional[EmailStr] = None

class RenewalCreateRequest(BaseModel):
    borrowalId: str = Field(..., min_length=1)
    bookId: Optional[str] = None
    userId: Optional[str] = None
    bookTitle: Optional[str] = None
    userName: Optional[str] = None
    currentDueDate: Optional[datetime] = None
    requestedDays: Optional[int] = None

class RenewalProcessRequest(BaseModel):
    renewalId: str = Field(..., min_length=1)
    action: str
    processedBy: str = Field(..., min_length=1)
    rejectionReason: Optional[str] = None

class NotificationActionRequest(BaseModel):
    userId: str = Field(..., min_length=1)
    action: str
