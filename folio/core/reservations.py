#!/usr/bin/env python

"""
    Reservation queue for Folio.

    Each book has a FIFO waitlist of `active` reservations ordered by
    `created_at`. The stored `position` is a convenience projection that
    is renumbered after a cancellation; readers get positions computed
    from the ordering itself (see `queue_for_book`).

    When a copy comes back the head of the queue is promoted to
    `fulfilled` and the copy is earmarked for the holder: it is taken
    straight back off the shelf, so `available_copies` does not rise,
    until the holder borrows it or the hold lapses.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional
from folio.configs import HOLD_HOURS
from folio.core.db import atomic, session as db
from folio.core.inventory import InventoryLedger
from folio.core.models import (
    Book, User, BorrowRecord, BorrowStatus, Reservation, ReservationStatus,
    EventType, Level, new_id
)
from folio.core.notifications import notify
from folio.core.exceptions import (
    BookNotFoundError,
    UserNotFoundError,
    ReservationNotFoundError,
    BookAvailableError,
    AlreadyBorrowedError,
    DuplicateReservationError,
    ReservationNotActiveError,
    NotOwnerError,
    ConflictError,
)
from folio.core.utils import utcnow

logger = logging.getLogger(__name__)

FIFO = (Reservation.created_at, Reservation.id)


class ReservationQueue:

    def __init__(self, hold_hours: int = HOLD_HOURS):
        self.hold_hours = hold_hours
        self.hold = timedelta(hours=hold_hours)

    @staticmethod
    def _active(tx, book_id: str) -> List[Reservation]:
        return tx.find(
            Reservation,
            Reservation.book_id == book_id,
            Reservation.status == ReservationStatus.ACTIVE,
            order_by=FIFO,
        )

    def reserve(self, book_id: str, user_id: str, book_title: Optional[str] = None,
                user_name: Optional[str] = None, user_email: Optional[str] = None,
                now: Optional[datetime] = None) -> Reservation:
        """Joins the waitlist for a book that has no copy on the shelf.

        Raises:
            BookNotFoundError, UserNotFoundError: unknown ids.
            BookAvailableError: a copy can be borrowed right now.
            AlreadyBorrowedError: the user already has this book out.
            DuplicateReservationError: the user is already queued or
                holds an unclaimed copy of this book.
        """
        now = now or utcnow()
        with atomic() as tx:
            if not (book := tx.read(Book, book_id)):
                raise BookNotFoundError("Book not found.")
            if not (user := tx.read(User, user_id, lock=False)):
                raise UserNotFoundError("Reader not found.")
            if book.available_copies > 0:
                raise BookAvailableError("Book is currently available, please borrow it directly.")
            if tx.first(BorrowRecord,
                        BorrowRecord.book_id == book_id,
                        BorrowRecord.user_id == user_id,
                        BorrowRecord.status == BorrowStatus.BORROWED, lock=False):
                raise AlreadyBorrowedError("You already have this book borrowed.")

            mine = tx.find(
                Reservation,
                Reservation.book_id == book_id,
                Reservation.user_id == user_id,
                Reservation.status.in_([ReservationStatus.ACTIVE, ReservationStatus.FULFILLED]),
            )
            if any(r.status == ReservationStatus.ACTIVE or r.is_unclaimed_hold for r in mine):
                raise DuplicateReservationError("You already have an active reservation for this book.")

            position = tx.count(
                Reservation,
                Reservation.book_id == book_id,
                Reservation.status == ReservationStatus.ACTIVE,
            ) + 1
            title = book_title or book.title
            reservation = tx.write(Reservation(
                id=new_id(),
                book_id=book_id,
                user_id=user_id,
                book_title=title,
                user_name=user_name or user.name,
                user_email=user_email or user.email,
                status=ReservationStatus.ACTIVE,
                position=position,
                created_at=now,
            ))
            book.reservation_count += 1
            notify(tx, user_id, EventType.RESERVATION_CREATED,
                   f'Reserved "{title}". Position in queue: {position}.',
                   reservation_id=reservation.id, book_id=book_id, position=position)
        logger.info(f"User {user_id} joined the queue for book {book_id} at position {position}")
        return reservation

    def cancel(self, reservation_id: str, requester_id: str,
               now: Optional[datetime] = None) -> Reservation:
        """Cancels an active reservation on behalf of its holder or staff,
        then closes the gap in the queue.
        """
        now = now or utcnow()
        with atomic() as tx:
            if not (reservation := tx.read(Reservation, reservation_id)):
                raise ReservationNotFoundError("Reservation not found.")
            if requester_id != reservation.user_id:
                requester = tx.read(User, requester_id, lock=False)
                if not (requester and requester.is_staff):
                    raise NotOwnerError("Only the holder or library staff may cancel this reservation.")
            if reservation.status != ReservationStatus.ACTIVE:
                raise ReservationNotActiveError(
                    f"Reservation is {reservation.status.value}, not active.")

            reservation.status = ReservationStatus.CANCELLED
            reservation.cancelled_at = now
            reservation.position = None
            if book := tx.read(Book, reservation.book_id):
                book.reservation_count = max(0, book.reservation_count - 1)
            notify(tx, reservation.user_id, EventType.RESERVATION_CANCELLED,
                   f'Reservation for "{reservation.book_title}" cancelled.',
                   reservation_id=reservation.id, book_id=reservation.book_id)
            book_id = reservation.book_id

        self.renumber(book_id)
        return reservation

    def renumber(self, book_id: str) -> List[Reservation]:
        """Rewrites stored positions as 1..N over the active queue.

        Runs in its own transaction after a cancellation; if it loses a
        race the stored positions stay stale until the next renumber,
        which is harmless because ordering comes from `created_at`.
        """
        try:
            with atomic() as tx:
                queue = self._active(tx, book_id)
                for i, reservation in enumerate(queue, start=1):
                    if reservation.position != i:
                        reservation.position = i
            return queue
        except ConflictError as e:
            logger.warning(f"Queue renumbering for book {book_id} deferred: {e}")
            return []

    def promote(self, tx, book: Book, now: datetime) -> Optional[Reservation]:
        """Hands a free copy of `book` to the head of its queue, inside
        the caller's transaction. Returns the fulfilled reservation, or
        None when nobody is waiting or no copy is free.
        """
        if book.available_copies <= 0:
            return None
        queue = self._active(tx, book.id)
        if not queue:
            return None

        head, rest = queue[0], queue[1:]
        InventoryLedger.decrement_available(book)
        head.status = ReservationStatus.FULFILLED
        head.fulfilled_at = now
        head.expires_at = now + self.hold
        head.position = None
        book.reservation_count = max(0, book.reservation_count - 1)
        for i, reservation in enumerate(rest, start=1):
            reservation.position = i

        notify(tx, head.user_id, EventType.RESERVATION_READY,
               f'"{head.book_title or book.title}" is ready! '
               f'You have {self.hold_hours} hours to borrow it.',
               level=Level.SUCCESS,
               reservation_id=head.id, book_id=book.id, expires_at=head.expires_at)
        logger.info(f"Book {book.id} earmarked for user {head.user_id} until {head.expires_at}")
        return head

    def fulfill_next(self, book_id: str, now: Optional[datetime] = None) -> Optional[Reservation]:
        now = now or utcnow()
        with atomic() as tx:
            if not (book := tx.read(Book, book_id)):
                raise BookNotFoundError("Book not found.")
            return self.promote(tx, book, now)

    def _expire(self, tx, book: Book, reservation: Reservation, now: datetime):
        reservation.status = ReservationStatus.EXPIRED
        reservation.expired_at = now
        InventoryLedger.increment_available(book)
        notify(tx, reservation.user_id, EventType.RESERVATION_EXPIRED,
               f'Your hold on "{reservation.book_title or book.title}" has expired.',
               level=Level.WARNING,
               reservation_id=reservation.id, book_id=book.id)
        logger.info(f"Hold {reservation.id} on book {book.id} expired")
        return self.promote(tx, book, now)

    def release_lapsed(self, tx, book: Book, now: datetime) -> List[Reservation]:
        """Expires every hold on `book` whose window has closed, inside
        the caller's transaction, cascading each freed copy down the queue.
        """
        lapsed = tx.find(
            Reservation,
            Reservation.book_id == book.id,
            Reservation.status == ReservationStatus.FULFILLED,
            Reservation.borrowal_id == None,
            Reservation.expires_at <= now,
            order_by=Reservation.expires_at,
        )
        for reservation in lapsed:
            self._expire(tx, book, reservation, now)
        return lapsed

    def expire_hold(self, reservation_id: str, now: Optional[datetime] = None) -> bool:
        """Releases an unclaimed hold whose window has closed.

        Idempotent: returns False without changing anything when the
        reservation is no longer an unclaimed hold (already expired,
        borrowed, cancelled) or its window is still open.
        """
        now = now or utcnow()
        with atomic() as tx:
            if not (reservation := tx.read(Reservation, reservation_id)):
                raise ReservationNotFoundError("Reservation not found.")
            if not reservation.is_unclaimed_hold:
                return False
            if reservation.expires_at and reservation.expires_at > now:
                return False
            book = tx.read(Book, reservation.book_id)
            self._expire(tx, book, reservation, now)
        return True

    def expire_due_holds(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        due = [rid for (rid,) in db.query(Reservation.id).filter(
            Reservation.status == ReservationStatus.FULFILLED,
            Reservation.borrowal_id == None,
            Reservation.expires_at <= now,
        ).all()]
        expired = 0
        for reservation_id in due:
            try:
                expired += self.expire_hold(reservation_id, now=now)
            except ConflictError as e:
                logger.warning(f"Skipping hold {reservation_id}, will retry next sweep: {e}")
        return expired

    def unclaimed_hold(self, tx, book_id: str, user_id: str) -> Optional[Reservation]:
        return tx.first(
            Reservation,
            Reservation.book_id == book_id,
            Reservation.user_id == user_id,
            Reservation.status == ReservationStatus.FULFILLED,
            Reservation.borrowal_id == None,
        )

    def claim(self, tx, book: Book, user_id: str, borrowal_id: str, now: datetime,
              hold: Optional[Reservation] = None) -> Optional[Reservation]:
        """Ties a new borrowal to the borrower's reservation, if any.

        An earmarked hold is marked claimed. A still-queued reservation
        (the borrower found a general copy first) leaves the queue as
        fulfilled and the rest of the queue closes up.
        """
        if hold is not None:
            hold.borrowal_id = borrowal_id
            return hold

        queue = self._active(tx, book.id)
        own = next((r for r in queue if r.user_id == user_id), None)
        if own is None:
            return None
        own.status = ReservationStatus.FULFILLED
        own.fulfilled_at = now
        own.borrowal_id = borrowal_id
        own.position = None
        book.reservation_count = max(0, book.reservation_count - 1)
        for i, reservation in enumerate((r for r in queue if r is not own), start=1):
            reservation.position = i
        return own

    @staticmethod
    def queue_for_book(book_id: str) -> List[Reservation]:
        """Active reservations in FIFO order; a reservation's queue
        position is its 1-based index in this list.
        """
        return db.query(Reservation).filter(
            Reservation.book_id == book_id,
            Reservation.status == ReservationStatus.ACTIVE,
        ).order_by(*FIFO).all()

    @staticmethod
    def for_user(user_id: str) -> List[Reservation]:
        return db.query(Reservation).filter(
            Reservation.user_id == user_id
        ).order_by(Reservation.created_at.desc()).all()

    @staticmethod
    def all(offset=None, limit=None) -> List[Reservation]:
        return db.query(Reservation).order_by(
            Reservation.created_at.desc()).offset(offset).limit(limit).all()
