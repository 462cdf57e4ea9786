#!/usr/bin/env python

"""
    Circulation Models for Folio,
    including books, patrons, borrowals, reservations, renewals,
    late fee ledger entries and the notification outbox.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

import enum
import uuid
from decimal import Decimal
from sqlalchemy import (
    Column, String, Integer, Numeric, DateTime, Boolean, ForeignKey, Index,
    JSON, Text, Enum as SQLAlchemyEnum, text
)
from sqlalchemy.orm import relationship
from folio.core.db import Base
from folio.core.utils import utcnow


def new_id():
    return uuid.uuid4().hex


class BookStatus(enum.Enum):
    AVAILABLE = "Available"
    BORROWED = "Borrowed"

class Role(enum.Enum):
    MEMBER = "member"
    LIBRARIAN = "librarian"
    ADMIN = "admin"

class BorrowStatus(enum.Enum):
    BORROWED = "borrowed"
    RETURNED = "returned"

class ReservationStatus(enum.Enum):
    ACTIVE = "active"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

class RenewalStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class EventType(enum.Enum):
    BORROWED = "borrowed"
    RETURNED = "returned"
    RETURNED_LATE = "returned_late"
    RESERVATION_CREATED = "reservation_created"
    RESERVATION_CANCELLED = "reservation_cancelled"
    RESERVATION_READY = "reservation_ready"
    RESERVATION_EXPIRED = "reservation_expired"
    RENEWAL_REQUESTED = "renewal_requested"
    RENEWAL_APPROVED = "renewal_approved"
    RENEWAL_REJECTED = "renewal_rejected"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"

class Level(enum.Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"


def _enum(cls):
    return SQLAlchemyEnum(cls, values_callable=lambda e: [m.value for m in e],
                          native_enum=False)


class Book(Base):
    __tablename__ = 'books'

    id = Column(String(50), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False, default='')
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)
    status = Column(_enum(BookStatus), nullable=False, default=BookStatus.AVAILABLE)
    late_fee_per_day = Column(Numeric(10, 2), nullable=True)
    total_borrows = Column(Integer, nullable=False, default=0)
    reservation_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}


class User(Base):
    """Borrowing-relevant projection of a patron."""
    __tablename__ = 'users'

    id = Column(String(50), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False, default='')
    email = Column(String(255), nullable=True)
    role = Column(_enum(Role), nullable=False, default=Role.MEMBER)
    books_out = Column(Integer, nullable=False, default=0)
    borrowed_books = Column(JSON, nullable=False, default=list)
    late_fees = Column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    created_at = Column(DateTime, default=utcnow)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    @property
    def is_staff(self):
        return self.role in (Role.LIBRARIAN, Role.ADMIN)


class BorrowRecord(Base):
    __tablename__ = 'borrowals'

    id = Column(String(50), primary_key=True, default=new_id)
    book_id = Column(String(50), ForeignKey('books.id'), nullable=False)
    user_id = Column(String(50), ForeignKey('users.id'), nullable=False)
    borrowed_at = Column(DateTime, nullable=False, default=utcnow)
    due_date = Column(DateTime, nullable=False)
    returned_at = Column(DateTime, nullable=True)
    status = Column(_enum(BorrowStatus), nullable=False, default=BorrowStatus.BORROWED)
    renewal_count = Column(Integer, nullable=False, default=0)
    is_overdue = Column(Boolean, nullable=False, default=False)
    reminded_at = Column(DateTime, nullable=True)
    overdue_notified_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)

    book = relationship('Book')
    user = relationship('User')

    __mapper_args__ = {'version_id_col': version}
    __table_args__ = (
        Index('uq_borrowal_active', 'book_id', 'user_id', unique=True,
              sqlite_where=text("status = 'borrowed'"),
              postgresql_where=text("status = 'borrowed'")),
    )


class Reservation(Base):
    __tablename__ = 'reservations'

    id = Column(String(50), primary_key=True, default=new_id)
    book_id = Column(String(50), ForeignKey('books.id'), nullable=False)
    user_id = Column(String(50), ForeignKey('users.id'), nullable=False)
    book_title = Column(String(255), nullable=True)
    user_name = Column(String(100), nullable=True)
    user_email = Column(String(255), nullable=True)
    status = Column(_enum(ReservationStatus), nullable=False, default=ReservationStatus.ACTIVE)
    position = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    fulfilled_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    expired_at = Column(DateTime, nullable=True)
    # set once the holder borrows the earmarked copy
    borrowal_id = Column(String(50), ForeignKey('borrowals.id'), nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}
    __table_args__ = (
        Index('uq_reservation_active', 'book_id', 'user_id', unique=True,
              sqlite_where=text("status = 'active'"),
              postgresql_where=text("status = 'active'")),
    )

    @property
    def is_unclaimed_hold(self):
        return self.status == ReservationStatus.FULFILLED and self.borrowal_id is None


class RenewalRequest(Base):
    __tablename__ = 'renewals'

    id = Column(String(50), primary_key=True, default=new_id)
    borrowal_id = Column(String(50), ForeignKey('borrowals.id'), nullable=False)
    book_id = Column(String(50), ForeignKey('books.id'), nullable=False)
    user_id = Column(String(50), ForeignKey('users.id'), nullable=False)
    book_title = Column(String(255), nullable=True)
    user_name = Column(String(100), nullable=True)
    current_due_date = Column(DateTime, nullable=False)
    requested_days = Column(Integer, nullable=False)
    status = Column(_enum(RenewalStatus), nullable=False, default=RenewalStatus.PENDING)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    processed_at = Column(DateTime, nullable=True)
    processed_by = Column(String(50), nullable=True)
    rejection_reason = Column(String(255), nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}
    __table_args__ = (
        Index('uq_renewal_pending', 'borrowal_id', unique=True,
              sqlite_where=text("status = 'pending'"),
              postgresql_where=text("status = 'pending'")),
    )


class LateFeeTransaction(Base):
    """Append-only ledger entry; never updated once written."""
    __tablename__ = 'late_fee_transactions'

    id = Column(String(50), primary_key=True, default=new_id)
    user_id = Column(String(50), ForeignKey('users.id'), nullable=False)
    book_id = Column(String(50), ForeignKey('books.id'), nullable=False)
    borrowal_id = Column(String(50), ForeignKey('borrowals.id'), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    days_late = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Notification(Base):
    """Outbox row: an intent-to-notify written with the state change
    that caused it and handed to a deliverer afterwards.
    """
    __tablename__ = 'notifications'

    id = Column(String(50), primary_key=True, default=new_id)
    user_id = Column(String(50), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    type = Column(_enum(EventType), nullable=False)
    level = Column(_enum(Level), nullable=False, default=Level.INFO)
    message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    is_read = Column(Boolean, nullable=False, default=False)
    dispatched_at = Column(DateTime, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
