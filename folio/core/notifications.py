#!/usr/bin/env python

"""
    Notification outbox for Folio.

    Circulation operations never talk to a delivery channel directly.
    They call `notify()` inside their own transaction, which writes a
    `Notification` row that commits (or rolls back) together with the
    state change. `NotificationDispatcher` later hands undelivered rows
    to a `Deliverer`; a delivery failure is recorded on the row and
    retried on the next sweep, it never touches circulation state.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional
import httpx
from folio.configs import NOTIFY_WEBHOOK_URL, NOTIFY_TIMEOUT
from folio.core.db import session as db
from folio.core.exceptions import DeliveryError
from folio.core.models import Notification, EventType, Level, User
from folio.core.utils import utcnow

logger = logging.getLogger(__name__)


def _jsonable(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value

def notify(tx, user_id: str, event: EventType, message: str,
           level: Level = Level.INFO, **payload) -> Notification:
    """Records an intent-to-notify as part of the transaction `tx`."""
    return tx.write(Notification(
        user_id=user_id,
        type=event,
        level=level,
        message=message,
        payload={k: _jsonable(v) for k, v in payload.items()},
        created_at=utcnow(),
    ))


class Deliverer:
    def deliver(self, notification: Notification):
        raise NotImplementedError


class LogDeliverer(Deliverer):
    def deliver(self, notification: Notification):
        logger.info(
            f"[{notification.type.value}] to {notification.user_id}: {notification.message}")


class WebhookDeliverer(Deliverer):
    """POSTs each notification as JSON to an external mailer/push service."""

    def __init__(self, url: str, timeout: float = NOTIFY_TIMEOUT):
        self.url = url
        self.timeout = timeout

    def deliver(self, notification: Notification):
        user = db.get(User, notification.user_id)
        body = {
            "type": notification.type.value,
            "level": notification.level.value,
            "to": user.email if user else None,
            "userId": notification.user_id,
            "message": notification.message,
            "data": notification.payload,
        }
        try:
            r = httpx.post(self.url, json=body, timeout=self.timeout)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryError(f"Webhook delivery to {self.url} failed: {e}") from e


def default_deliverer() -> Deliverer:
    if NOTIFY_WEBHOOK_URL:
        return WebhookDeliverer(NOTIFY_WEBHOOK_URL)
    return LogDeliverer()


class NotificationDispatcher:

    DEFAULT_LIMIT = 100

    def __init__(self, deliverer: Optional[Deliverer] = None):
        self.deliverer = deliverer or default_deliverer()

    def pending(self, limit=None):
        return db.query(Notification).filter(
            Notification.dispatched_at == None
        ).order_by(Notification.created_at).limit(limit or self.DEFAULT_LIMIT).all()

    def dispatch_pending(self, limit=None, now=None) -> dict:
        """Delivers undelivered notifications, oldest first. Safe to call
        repeatedly; a row is marked delivered only after its deliverer
        returns.
        """
        sent = failed = 0
        for notification in self.pending(limit=limit):
            try:
                self.deliverer.deliver(notification)
                notification.dispatched_at = now or utcnow()
                sent += 1
            except DeliveryError as e:
                notification.attempts += 1
                notification.last_error = str(e)
                failed += 1
                logger.warning(f"Notification {notification.id} not delivered: {e}")
            db.commit()
        return {"sent": sent, "failed": failed}


def for_user(user_id: str, unread_only=False):
    q = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        q = q.filter(Notification.is_read == False)
    return q.order_by(Notification.created_at.desc()).all()

def mark_all_read(user_id: str) -> int:
    count = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read == False
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return count

def clear_all(user_id: str) -> int:
    count = db.query(Notification).filter(
        Notification.user_id == user_id
    ).delete(synchronize_session=False)
    db.commit()
    return count
