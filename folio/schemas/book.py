#!/usr/bin/env python
"""
    Book Schema for Folio, the public inventory view of a title.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel
from folio.core.models import BookStatus
from folio.schemas import CamelConfig

class Book(BaseModel):
    id: str
    title: str
    total_copies: int
    available_copies: int
    status: BookStatus
    late_fee_per_day: Optional[Decimal] = None
    reservation_count: int = 0
    total_borrows: int = 0

    class Config(CamelConfig):
        json_schema_extra = {
            "example": {
                "id": "3f1c0c9e2b6a4d0e9f0a1b2c3d4e5f60",
                "title": "The Left Hand of Darkness",
                "totalCopies": 2,
                "availableCopies": 0,
                "status": "Borrowed",
                "lateFeePerDay": "1.00",
                "reservationCount": 1,
                "totalBorrows": 14
            }
        }
