#!/usr/bin/env python

"""
    FolioAPI, the facade the HTTP routes call into. Every entry point
    runs on a fresh session and returns plain JSON-ready dicts.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

from datetime import datetime
from typing import Optional
from folio.core.db import teardown
from folio.core import circulation, reservations, renewals, dispatcher
from folio.core import notifications
from folio.core.models import Book
from folio.core.exceptions import (
    BookNotFoundError,
    InvalidActionError,
    ValidationError,
)
from folio.core.utils import utcnow, isoformat
from folio.schemas.book import Book as BookView
from folio.schemas.borrowal import Borrowal as BorrowalView
from folio.schemas.reservation import Reservation as ReservationView
from folio.schemas.renewal import Renewal as RenewalView
from folio.schemas.notification import Notification as NotificationView

MARK_ALL_READ = 'mark-all-read'
CLEAR_ALL = 'clear-all'


def _dump(view, record, **extra):
    data = view.model_validate(record).model_dump(by_alias=True, mode='json')
    data.update(extra)
    return data


class FolioAPI:

    DEFAULT_LIMIT = 50

    @classmethod
    @teardown
    def borrow(cls, book_id: str, user_id: str, due_date: datetime) -> dict:
        record = circulation.borrow(book_id, user_id, due_date)
        return {
            "success": True,
            "message": "Book borrowed successfully.",
            "borrowalId": record.id,
            "dueDate": isoformat(record.due_date),
            "borrowal": _dump(BorrowalView, record),
        }

    @classmethod
    @teardown
    def return_book(cls, book_id: str, user_id: str) -> dict:
        result = circulation.return_book(book_id, user_id)
        return {
            "success": True,
            "message": result.message,
            "lateFee": float(result.fee),
            "daysLate": result.days_late,
            "reservationFulfilled": result.reservation.id if result.reservation else None,
        }

    @classmethod
    @teardown
    def get_book(cls, book_id: str) -> dict:
        if not (book := Book.get(book_id)):
            raise BookNotFoundError("Book not found.")
        return _dump(BookView, book)

    @classmethod
    @teardown
    def reserve(cls, book_id: str, user_id: str, book_title: Optional[str] = None,
                user_name: Optional[str] = None, user_email: Optional[str] = None) -> dict:
        reservation = reservations.reserve(
            book_id, user_id, book_title=book_title,
            user_name=user_name, user_email=user_email)
        return {
            "success": True,
            "message": f"Book reserved successfully. You are #{reservation.position} in queue.",
            "reservationId": reservation.id,
            "position": reservation.position,
        }

    @classmethod
    @teardown
    def cancel_reservation(cls, reservation_id: str, user_id: Optional[str]) -> dict:
        reservations.cancel(reservation_id, user_id)
        return {"success": True, "message": "Reservation cancelled successfully."}

    @classmethod
    @teardown
    def list_reservations(cls, book_id: Optional[str] = None, user_id: Optional[str] = None,
                          offset: Optional[int] = None, limit: Optional[int] = None) -> dict:
        """Lists reservations. For a book, the active queue with each
        entry's position as its place in FIFO order; for a user, their
        reservations newest first; otherwise a page of all reservations.
        """
        if book_id:
            queue = reservations.queue_for_book(book_id)
            items = [_dump(ReservationView, r, position=i)
                     for i, r in enumerate(queue, start=1)]
        elif user_id:
            items = [_dump(ReservationView, r) for r in reservations.for_user(user_id)]
        else:
            items = [_dump(ReservationView, r) for r in reservations.all(
                offset=offset, limit=limit or cls.DEFAULT_LIMIT)]
        return {"success": True, "reservations": items}

    @classmethod
    @teardown
    def request_renewal(cls, borrowal_id: str, requested_days: Optional[int] = None,
                        user_id: Optional[str] = None, book_id: Optional[str] = None) -> dict:
        renewal = renewals.request(borrowal_id, requested_days,
                                   user_id=user_id, book_id=book_id)
        return {
            "success": True,
            "message": "Renewal request submitted successfully.",
            "renewalId": renewal.id,
        }

    @classmethod
    @teardown
    def process_renewal(cls, renewal_id: str, action: str, processed_by: str,
                        rejection_reason: Optional[str] = None) -> dict:
        decision = renewals.process(renewal_id, action, processed_by,
                                    rejection_reason=rejection_reason)
        return {
            "success": True,
            "message": decision.message,
            "newDueDate": isoformat(decision.new_due_date),
        }

    @classmethod
    @teardown
    def list_renewals(cls, user_id: Optional[str] = None, status: Optional[str] = None) -> dict:
        try:
            requests = renewals.list_requests(user_id=user_id, status=status)
        except ValueError:
            raise ValidationError(f"Unknown renewal status: {status}")
        return {"success": True, "renewals": [_dump(RenewalView, r) for r in requests]}

    @classmethod
    @teardown
    def list_notifications(cls, user_id: str, unread_only: bool = False) -> dict:
        items = notifications.for_user(user_id, unread_only=unread_only)
        return {
            "success": True,
            "notifications": [_dump(NotificationView, n) for n in items],
            "unreadCount": sum(1 for n in items if not n.is_read),
        }

    @classmethod
    @teardown
    def manage_notifications(cls, user_id: str, action: str) -> dict:
        if action == MARK_ALL_READ:
            count = notifications.mark_all_read(user_id)
            return {"success": True, "message": "All notifications marked as read", "count": count}
        if action == CLEAR_ALL:
            count = notifications.clear_all(user_id)
            return {"success": True, "message": "All notifications cleared", "count": count}
        raise InvalidActionError(f'Invalid action. Must be "{MARK_ALL_READ}" or "{CLEAR_ALL}".')

    @classmethod
    @teardown
    def expire_holds(cls) -> dict:
        now = utcnow()
        return {"success": True, "expired": reservations.expire_due_holds(now=now),
                "timestamp": isoformat(now)}

    @classmethod
    @teardown
    def send_due_reminders(cls) -> dict:
        now = utcnow()
        return {"success": True, "sent": circulation.send_due_reminders(now=now),
                "timestamp": isoformat(now)}

    @classmethod
    @teardown
    def send_overdue_notices(cls) -> dict:
        now = utcnow()
        return {"success": True, "sent": circulation.send_overdue_notices(now=now),
                "timestamp": isoformat(now)}

    @classmethod
    @teardown
    def dispatch_notifications(cls, limit: Optional[int] = None) -> dict:
        now = utcnow()
        result = dispatcher.dispatch_pending(limit=limit, now=now)
        return {"success": True, **result, "timestamp": isoformat(now)}
