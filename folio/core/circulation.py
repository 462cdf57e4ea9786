#!/usr/bin/env python

"""
    Circulation for Folio: borrowing, returning and the scheduled
    due-date sweeps.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from collections import namedtuple
from datetime import datetime, timedelta
from typing import Optional
from folio.configs import MAX_BOOKS_PER_USER, DUE_SOON_DAYS
from folio.core.db import atomic, session as db
from folio.core.fees import LateFeeCalculator
from folio.core.inventory import InventoryLedger
from folio.core.models import (
    Book, User, BorrowRecord, BorrowStatus, LateFeeTransaction,
    EventType, Level, new_id
)
from folio.core.notifications import notify
from folio.core.reservations import ReservationQueue
from folio.core.exceptions import (
    BookNotFoundError,
    UserNotFoundError,
    BorrowalNotFoundError,
    BorrowLimitError,
    AlreadyBorrowedError,
    NotBorrowedError,
    InvalidDueDateError,
    ConflictError,
)
from folio.core.utils import utcnow, as_utc, money

logger = logging.getLogger(__name__)

ReturnResult = namedtuple('ReturnResult', [
    'borrowal', 'fee', 'days_late', 'message', 'reservation'
])


def _fmt_date(value: datetime) -> str:
    return value.strftime('%Y-%m-%d')


class CirculationManager:
    """Runs Borrow and Return as single atomic transactions over the
    book's inventory, the borrower's projection and the borrow record.
    """

    def __init__(self, fees: Optional[LateFeeCalculator] = None,
                 reservations: Optional[ReservationQueue] = None,
                 max_books_per_user: int = MAX_BOOKS_PER_USER,
                 due_soon_days: int = DUE_SOON_DAYS):
        self.fees = fees or LateFeeCalculator()
        self.reservations = reservations or ReservationQueue()
        self.max_books_per_user = max_books_per_user
        self.due_soon = timedelta(days=due_soon_days)

    def borrow(self, book_id: str, user_id: str, due_date: datetime,
               now: Optional[datetime] = None) -> BorrowRecord:
        """
        Lend one copy of a book to a reader.

        Args:
            book_id: Book to lend.
            user_id: Borrowing reader.
            due_date: When the copy must be back; must lie in the future.

        Returns:
            The new `borrowed` BorrowRecord.

        Raises:
            InvalidDueDateError: If due_date is not after now.
            BookNotFoundError, UserNotFoundError: If either record is missing.
            BorrowLimitError: If the reader already has the maximum out.
            AlreadyBorrowedError: If the reader already has this book out.
            BookUnavailableError: If no copy is free for this reader.
        """
        now = now or utcnow()
        due_date = as_utc(due_date)
        if due_date <= now:
            raise InvalidDueDateError("Due date must be in the future.")

        with atomic() as tx:
            if not (book := tx.read(Book, book_id)):
                raise BookNotFoundError("Book not found.")
            if not (user := tx.read(User, user_id)):
                raise UserNotFoundError("Reader not found.")
            if self.max_books_per_user and user.books_out >= self.max_books_per_user:
                raise BorrowLimitError(
                    f"Reader already has the maximum of {self.max_books_per_user} books out.")
            if tx.first(BorrowRecord,
                        BorrowRecord.book_id == book_id,
                        BorrowRecord.user_id == user_id,
                        BorrowRecord.status == BorrowStatus.BORROWED):
                raise AlreadyBorrowedError("Reader already has this book borrowed.")

            self.reservations.release_lapsed(tx, book, now)
            hold = self.reservations.unclaimed_hold(tx, book_id, user_id)
            if hold is None:
                InventoryLedger.decrement_available(book)

            record = tx.write(BorrowRecord(
                id=new_id(),
                book_id=book_id,
                user_id=user_id,
                borrowed_at=now,
                due_date=due_date,
                status=BorrowStatus.BORROWED,
            ))
            tx.flush()
            self.reservations.claim(tx, book, user_id, record.id, now, hold=hold)

            book.total_borrows += 1
            user.books_out += 1
            user.borrowed_books = sorted(set(user.borrowed_books or []) | {book_id})
            notify(tx, user_id, EventType.BORROWED,
                   f'You have successfully borrowed "{book.title}". '
                   f'It is due on {_fmt_date(due_date)}.',
                   level=Level.SUCCESS,
                   borrowal_id=record.id, book_id=book_id, due_date=due_date)
        logger.info(f"Book {book_id} borrowed by {user_id}, due {due_date}")
        return record

    def find_active(self, book_id: str, user_id: str) -> Optional[BorrowRecord]:
        return db.query(BorrowRecord).filter(
            BorrowRecord.book_id == book_id,
            BorrowRecord.user_id == user_id,
            BorrowRecord.status == BorrowStatus.BORROWED
        ).first()

    def return_book(self, book_id: str, user_id: str,
                    now: Optional[datetime] = None) -> ReturnResult:
        """Takes a copy back, assesses any late fee and, when someone is
        waiting, earmarks the copy for the head of the queue, all in one
        transaction.

        The borrowal is located before the transaction by (book, user);
        the transaction then re-reads it by id and aborts if another
        request returned it in the meantime.
        """
        now = now or utcnow()
        if not (candidate := self.find_active(book_id, user_id)):
            raise BorrowalNotFoundError(
                "Return not found. No active borrowal record for this user and book.")
        borrowal_id = candidate.id

        with atomic() as tx:
            if not (book := tx.read(Book, book_id)):
                raise BookNotFoundError("Book not found during transaction.")
            if not (user := tx.read(User, user_id)):
                raise UserNotFoundError("Reader not found during transaction.")
            if not (record := tx.read(BorrowRecord, borrowal_id)):
                raise BorrowalNotFoundError("Borrowal record disappeared during transaction.")
            if record.status != BorrowStatus.BORROWED:
                raise NotBorrowedError("This borrowal has already been returned.")

            fee = self.fees.compute_fee(record.due_date, now, book.late_fee_per_day)
            InventoryLedger.increment_available(book)

            user.books_out = max(0, user.books_out - 1)
            user.borrowed_books = [b for b in (user.borrowed_books or []) if b != book_id]
            if fee.amount > 0:
                user.late_fees = money(user.late_fees + fee.amount)
                tx.write(LateFeeTransaction(
                    id=new_id(),
                    user_id=user_id,
                    book_id=book_id,
                    borrowal_id=record.id,
                    amount=fee.amount,
                    days_late=fee.days_late,
                    created_at=now,
                ))

            record.status = BorrowStatus.RETURNED
            record.returned_at = now
            record.is_overdue = fee.days_late > 0

            message = 'Book returned successfully.'
            if fee.amount > 0:
                message += (f" A late fee of ${fee.amount:.2f} for {fee.days_late} day(s) "
                            f"has been added to the reader's account.")
                notify(tx, user_id, EventType.RETURNED_LATE,
                       f'"{book.title}" was returned {fee.days_late} day(s) late. '
                       f'A fee of ${fee.amount:.2f} has been charged.',
                       level=Level.WARNING,
                       borrowal_id=record.id, book_id=book_id,
                       fee=fee.amount, days_late=fee.days_late)
            else:
                notify(tx, user_id, EventType.RETURNED,
                       f'You have successfully returned "{book.title}".',
                       level=Level.SUCCESS,
                       borrowal_id=record.id, book_id=book_id)

            reservation = self.reservations.promote(tx, book, now)

        if fee.amount > 0:
            logger.info(f"Late fee {fee.amount} ({fee.days_late} days) charged to {user_id}")
        logger.info(f"Book {book_id} returned by {user_id}")
        return ReturnResult(record, fee.amount, fee.days_late, message, reservation)

    def send_due_reminders(self, now: Optional[datetime] = None) -> int:
        """Emits one `due_soon` notification per borrowal falling due
        within the reminder horizon. Re-running sends nothing new.
        """
        now = now or utcnow()
        due = [rid for (rid,) in db.query(BorrowRecord.id).filter(
            BorrowRecord.status == BorrowStatus.BORROWED,
            BorrowRecord.due_date > now,
            BorrowRecord.due_date <= now + self.due_soon,
            BorrowRecord.reminded_at == None,
        ).all()]

        sent = 0
        for borrowal_id in due:
            try:
                with atomic() as tx:
                    record = tx.read(BorrowRecord, borrowal_id)
                    if record.status != BorrowStatus.BORROWED or record.reminded_at:
                        continue
                    book = tx.read(Book, record.book_id, lock=False)
                    record.reminded_at = now
                    notify(tx, record.user_id, EventType.DUE_SOON,
                           f'"{book.title}" is due on {_fmt_date(record.due_date)}.',
                           borrowal_id=record.id, book_id=record.book_id,
                           due_date=record.due_date)
                sent += 1
            except ConflictError as e:
                logger.warning(f"Reminder for borrowal {borrowal_id} skipped: {e}")
        return sent

    def send_overdue_notices(self, now: Optional[datetime] = None) -> int:
        """Flags overdue borrowals and emits one `overdue` notification
        each, quoting the fee accrued so far.
        """
        now = now or utcnow()
        overdue = [rid for (rid,) in db.query(BorrowRecord.id).filter(
            BorrowRecord.status == BorrowStatus.BORROWED,
            BorrowRecord.due_date < now,
            BorrowRecord.overdue_notified_at == None,
        ).all()]

        sent = 0
        for borrowal_id in overdue:
            try:
                with atomic() as tx:
                    record = tx.read(BorrowRecord, borrowal_id)
                    if record.status != BorrowStatus.BORROWED or record.overdue_notified_at:
                        continue
                    book = tx.read(Book, record.book_id, lock=False)
                    accrued = self.fees.compute_fee(record.due_date, now, book.late_fee_per_day)
                    record.is_overdue = True
                    record.overdue_notified_at = now
                    notify(tx, record.user_id, EventType.OVERDUE,
                           f'"{book.title}" is overdue since {_fmt_date(record.due_date)}. '
                           f'Late fees so far: ${accrued.amount:.2f}.',
                           level=Level.WARNING,
                           borrowal_id=record.id, book_id=record.book_id,
                           due_date=record.due_date, fee=accrued.amount)
                sent += 1
            except ConflictError as e:
                logger.warning(f"Overdue notice for borrowal {borrowal_id} skipped: {e}")
        return sent
