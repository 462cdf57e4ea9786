#!/usr/bin/env python

"""
    API routes for Folio,
    including circulation, reservations, renewals, notifications
    and the scheduled maintenance endpoints.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

from typing import Optional
from fastapi import APIRouter, Depends, Header, Request, status
from folio import configs
from folio.core.api import FolioAPI
from folio.core.exceptions import CronAuthError, RateLimitError, ValidationError
from folio.routes.schemas import (
    BorrowRequest,
    ReturnRequest,
    ReservationRequest,
    RenewalCreateRequest,
    RenewalProcessRequest,
    NotificationActionRequest,
)

def rate_limit(request: Request):
    """Spends one token from the caller's bucket, keyed by client address."""
    limiter = request.app.state.rate_limiter
    client = request.client.host if request.client else "anonymous"
    if not limiter.hit(client):
        raise RateLimitError("Too many requests. Please slow down.")

def requires_cron_secret(authorization: Optional[str] = Header(None)):
    if not configs.CRON_SECRET or authorization != f"Bearer {configs.CRON_SECRET}":
        raise CronAuthError("Unauthorized")

router = APIRouter(dependencies=[Depends(rate_limit)])

@router.post('/borrow', status_code=status.HTTP_200_OK)
def borrow(body: BorrowRequest):
    return FolioAPI.borrow(body.bookId, body.userId, body.dueDate)

@router.post('/return', status_code=status.HTTP_200_OK)
def return_book(body: ReturnRequest):
    return FolioAPI.return_book(body.bookId, body.userId)

@router.get('/books/{book_id}')
def get_book(book_id: str):
    return FolioAPI.get_book(book_id)

@router.post('/reservations', status_code=status.HTTP_200_OK)
def create_reservation(body: ReservationRequest):
    return FolioAPI.reserve(
        body.bookId, body.userId, book_title=body.bookTitle,
        user_name=body.userName, user_email=body.userEmail)

@router.delete('/reservations')
def cancel_reservation(id: Optional[str] = None, userId: Optional[str] = None):
    if not id:
        raise ValidationError("Reservation ID is required")
    return FolioAPI.cancel_reservation(id, userId)

@router.get('/reservations')
def get_reservations(bookId: Optional[str] = None, userId: Optional[str] = None,
                     offset: Optional[int] = None, limit: Optional[int] = None):
    return FolioAPI.list_reservations(
        book_id=bookId, user_id=userId, offset=offset, limit=limit)

@router.post('/renewals', status_code=status.HTTP_200_OK)
def request_renewal(body: RenewalCreateRequest):
    return FolioAPI.request_renewal(
        body.borrowalId, body.requestedDays,
        user_id=body.userId, book_id=body.bookId)

@router.patch('/renewals')
def process_renewal(body: RenewalProcessRequest):
    return FolioAPI.process_renewal(
        body.renewalId, body.action, body.processedBy,
        rejection_reason=body.rejectionReason)

@router.get('/renewals')
def get_renewals(userId: Optional[str] = None, status: Optional[str] = None):
    return FolioAPI.list_renewals(user_id=userId, status=status)

@router.get('/notifications')
def get_notifications(userId: str, unreadOnly: bool = False):
    return FolioAPI.list_notifications(userId, unread_only=unreadOnly)

@router.post('/notifications')
def manage_notifications(body: NotificationActionRequest):
    return FolioAPI.manage_notifications(body.userId, body.action)

@router.api_route('/scheduled/expire-holds', methods=['GET', 'POST'],
                  dependencies=[Depends(requires_cron_secret)])
def expire_holds():
    return FolioAPI.expire_holds()

@router.api_route('/scheduled/send-reminders', methods=['GET', 'POST'],
                  dependencies=[Depends(requires_cron_secret)])
def send_reminders():
    return FolioAPI.send_due_reminders()

@router.api_route('/scheduled/send-overdue', methods=['GET', 'POST'],
                  dependencies=[Depends(requires_cron_secret)])
def send_overdue():
    return FolioAPI.send_overdue_notices()

@router.api_route('/scheduled/dispatch-notifications', methods=['GET', 'POST'],
                  dependencies=[Depends(requires_cron_secret)])
def dispatch_notifications(limit: Optional[int] = None):
    return FolioAPI.dispatch_notifications(limit=limit)
