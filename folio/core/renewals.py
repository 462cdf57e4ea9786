#!/usr/bin/env python

"""
    Renewal workflow for Folio: a reader asks for more time on a loan,
    staff approve or reject. `pending` is the only non-terminal state.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from collections import namedtuple
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.orm.attributes import flag_modified
from folio.configs import RENEWAL_MIN_DAYS, RENEWAL_MAX_DAYS, DEFAULT_RENEWAL_DAYS
from folio.core.db import atomic, session as db
from folio.core.models import (
    Book, User, BorrowRecord, BorrowStatus, Reservation, ReservationStatus,
    RenewalRequest, RenewalStatus, EventType, Level, new_id
)
from folio.core.notifications import notify
from folio.core.exceptions import (
    InvalidRenewalDaysError,
    BookNotFoundError,
    InvalidActionError,
    BookMismatchError,
    BorrowalNotFoundError,
    RenewalNotFoundError,
    NotBorrowedError,
    ReservationsPendingError,
    DuplicateRenewalError,
    RenewalProcessedError,
    StaleRecordError,
    NotOwnerError,
    StaffRequiredError,
)
from folio.core.utils import utcnow

logger = logging.getLogger(__name__)

APPROVE = 'approve'
REJECT = 'reject'
DEFAULT_REJECTION_REASON = 'No reason provided'

RenewalDecision = namedtuple('RenewalDecision', ['renewal', 'new_due_date', 'message'])


class RenewalWorkflow:

    def __init__(self, min_days: int = RENEWAL_MIN_DAYS, max_days: int = RENEWAL_MAX_DAYS,
                 default_days: int = DEFAULT_RENEWAL_DAYS):
        self.min_days = min_days
        self.max_days = max_days
        self.default_days = default_days

    def validate_days(self, requested_days) -> int:
        if requested_days is None:
            return self.default_days
        if isinstance(requested_days, bool) or not isinstance(requested_days, int) \
                or not self.min_days <= requested_days <= self.max_days:
            raise InvalidRenewalDaysError(
                f"requestedDays must be a whole number between {self.min_days} and {self.max_days}.")
        return requested_days

    @staticmethod
    def _hold_queue(tx, book_id: str, now: datetime) -> Book:
        """Reads the book locked and touches it, so a reservation committed
        concurrently conflicts with this transaction, then refuses to
        proceed while anyone is waiting for the book.
        """
        if not (book := tx.read(Book, book_id)):
            raise BookNotFoundError("Book not found.")
        book.updated_at = now
        flag_modified(book, "updated_at")
        if tx.count(Reservation,
                    Reservation.book_id == book_id,
                    Reservation.status == ReservationStatus.ACTIVE):
            raise ReservationsPendingError("Cannot renew: book has pending reservations.")
        return book

    def request(self, borrowal_id: str, requested_days: Optional[int] = None,
                user_id: Optional[str] = None, book_id: Optional[str] = None,
                now: Optional[datetime] = None) -> RenewalRequest:
        """Files a renewal request for an active borrowal.

        The due date recorded on the request is the borrowal's own; it
        is what approval extends. A waitlist on the book, an existing
        pending request, or a returned borrowal all refuse the request.
        """
        days = self.validate_days(requested_days)
        now = now or utcnow()
        with atomic() as tx:
            if not (record := tx.read(BorrowRecord, borrowal_id)):
                raise BorrowalNotFoundError("Borrowal not found.")
            if book_id and book_id != record.book_id:
                raise BookMismatchError("bookId does not match the borrowal.")
            if user_id and user_id != record.user_id:
                requester = tx.read(User, user_id, lock=False)
                if not (requester and requester.is_staff):
                    raise NotOwnerError("Only the borrower or library staff may request a renewal.")
            if record.status != BorrowStatus.BORROWED:
                raise NotBorrowedError("Book is not currently borrowed.")
            book = self._hold_queue(tx, record.book_id, now)
            if tx.count(RenewalRequest,
                        RenewalRequest.borrowal_id == borrowal_id,
                        RenewalRequest.status == RenewalStatus.PENDING):
                raise DuplicateRenewalError("You already have a pending renewal request for this book.")

            user = tx.read(User, record.user_id, lock=False)
            renewal = tx.write(RenewalRequest(
                id=new_id(),
                borrowal_id=record.id,
                book_id=record.book_id,
                user_id=record.user_id,
                book_title=book.title if book else None,
                user_name=user.name if user else None,
                current_due_date=record.due_date,
                requested_days=days,
                status=RenewalStatus.PENDING,
                created_at=now,
            ))
            notify(tx, record.user_id, EventType.RENEWAL_REQUESTED,
                   f'Renewal request for "{renewal.book_title}" submitted. Please await confirmation.',
                   renewal_id=renewal.id, borrowal_id=record.id, requested_days=days)
        logger.info(f"Renewal of {days} days requested for borrowal {borrowal_id}")
        return renewal

    def process(self, renewal_id: str, action: str, processed_by: str,
                rejection_reason: Optional[str] = None,
                now: Optional[datetime] = None) -> RenewalDecision:
        if action not in (APPROVE, REJECT):
            raise InvalidActionError('Invalid action. Must be "approve" or "reject".')
        now = now or utcnow()
        new_due_date = None

        with atomic() as tx:
            if not (renewal := tx.read(RenewalRequest, renewal_id)):
                raise RenewalNotFoundError("Renewal request not found.")
            processor = tx.read(User, processed_by, lock=False)
            if not (processor and processor.is_staff):
                raise StaffRequiredError("Admin or librarian access required.")
            if renewal.status != RenewalStatus.PENDING:
                raise RenewalProcessedError("This renewal request has already been processed.")

            renewal.processed_at = now
            renewal.processed_by = processed_by

            if action == APPROVE:
                if not (record := tx.read(BorrowRecord, renewal.borrowal_id)):
                    raise BorrowalNotFoundError("Borrowal not found.")
                if record.status != BorrowStatus.BORROWED:
                    raise NotBorrowedError("Book was returned before the renewal was approved.")
                if record.due_date != renewal.current_due_date:
                    raise StaleRecordError("The due date changed since this renewal was requested.")
                self._hold_queue(tx, record.book_id, now)

                new_due_date = renewal.current_due_date + timedelta(days=renewal.requested_days)
                record.due_date = new_due_date
                record.renewal_count += 1
                record.is_overdue = new_due_date <= now
                record.reminded_at = None
                record.overdue_notified_at = None
                renewal.status = RenewalStatus.APPROVED
                message = 'Renewal approved successfully'
                notify(tx, renewal.user_id, EventType.RENEWAL_APPROVED,
                       f'Renewal for "{renewal.book_title}" approved. '
                       f'New due date: {new_due_date.strftime("%Y-%m-%d")}.',
                       level=Level.SUCCESS,
                       renewal_id=renewal.id, borrowal_id=record.id, new_due_date=new_due_date)
            else:
                reason = rejection_reason or DEFAULT_REJECTION_REASON
                renewal.status = RenewalStatus.REJECTED
                renewal.rejection_reason = reason
                message = 'Renewal rejected successfully'
                notify(tx, renewal.user_id, EventType.RENEWAL_REJECTED,
                       f'Renewal for "{renewal.book_title}" was rejected. Reason: {reason}',
                       level=Level.WARNING,
                       renewal_id=renewal.id, reason=reason)

        logger.info(f"Renewal {renewal_id} {renewal.status.value} by {processed_by}")
        return RenewalDecision(renewal, new_due_date, message)

    @staticmethod
    def list_requests(user_id: Optional[str] = None, status: Optional[str] = None):
        q = db.query(RenewalRequest)
        if user_id:
            q = q.filter(RenewalRequest.user_id == user_id)
        if status:
            q = q.filter(RenewalRequest.status == RenewalStatus(status))
        return q.order_by(RenewalRequest.created_at.desc()).all()
