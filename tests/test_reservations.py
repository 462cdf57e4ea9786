#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.test_reservations
    ~~~~~~~~~~~~~~~~~~~~~~~

    The per-book waitlist: queueing, cancellation, earmarked holds
    and their expiry.

    :copyright: (c) 2015 by Authors.
    :license: see LICENSE for more details.
"""

from datetime import timedelta
import pytest
from folio.core.circulation import CirculationManager
from folio.core.db import session
from folio.core.models import (
    Book, BorrowRecord, BorrowStatus, Reservation, ReservationStatus,
    Role, Notification, EventType
)
from folio.core.reservations import ReservationQueue
from folio.core.inventory import InventoryLedger
from folio.core.exceptions import (
    BookAvailableError,
    AlreadyBorrowedError,
    BookUnavailableError,
    DuplicateReservationError,
    ReservationNotActiveError,
    ReservationNotFoundError,
    NotOwnerError,
)
from tests.conftest import NOW

DUE = NOW + timedelta(days=14)
HOLD = timedelta(hours=48)


@pytest.fixture
def queue():
    return ReservationQueue(hold_hours=48)


@pytest.fixture
def circulation(queue):
    return CirculationManager(reservations=queue)


@pytest.fixture
def lent_book(circulation, make_book, make_user):
    """A single-copy book already lent out to its first reader."""
    book_id = make_book(title="Parable of the Sower", copies=1)
    holder = make_user("Holder")
    circulation.borrow(book_id, holder, DUE, now=NOW)
    return book_id, holder


def _positions(queue, book_id):
    return [(r.user_id, i) for i, r in enumerate(queue.queue_for_book(book_id), start=1)]


def test_reserve_requires_unavailable_book(queue, make_book, make_user):
    with pytest.raises(BookAvailableError) as e:
        queue.reserve(make_book(copies=1), make_user(), now=NOW)
    assert e.value.reason == "book_available"


def test_reserve_joins_queue_in_order(queue, lent_book, make_user, fetch):
    book_id, _ = lent_book
    a, b, c = make_user("A"), make_user("B"), make_user("C")
    ra = queue.reserve(book_id, a, now=NOW)
    rb = queue.reserve(book_id, b, now=NOW + timedelta(minutes=1))
    rc = queue.reserve(book_id, c, now=NOW + timedelta(minutes=2))

    assert [r.position for r in (ra, rb, rc)] == [1, 2, 3]
    assert _positions(queue, book_id) == [(a, 1), (b, 2), (c, 3)]
    assert fetch(Book, book_id).reservation_count == 3
    assert fetch(Reservation, ra.id).book_title == "Parable of the Sower"


def test_duplicate_reservation(queue, lent_book, make_user):
    book_id, _ = lent_book
    user_id = make_user()
    queue.reserve(book_id, user_id, now=NOW)
    with pytest.raises(DuplicateReservationError):
        queue.reserve(book_id, user_id, now=NOW + timedelta(minutes=5))
    assert len(queue.queue_for_book(book_id)) == 1


def test_borrower_cannot_reserve_own_book(queue, lent_book):
    book_id, holder = lent_book
    with pytest.raises(AlreadyBorrowedError):
        queue.reserve(book_id, holder, now=NOW)


def test_cancel_closes_the_gap(queue, lent_book, make_user, fetch):
    book_id, _ = lent_book
    a, b, c = make_user("A"), make_user("B"), make_user("C")
    queue.reserve(book_id, a, now=NOW)
    rb = queue.reserve(book_id, b, now=NOW + timedelta(minutes=1))
    rc = queue.reserve(book_id, c, now=NOW + timedelta(minutes=2))

    queue.cancel(rb.id, b, now=NOW + timedelta(hours=1))

    cancelled = fetch(Reservation, rb.id)
    assert cancelled.status == ReservationStatus.CANCELLED
    assert cancelled.cancelled_at == NOW + timedelta(hours=1)
    assert _positions(queue, book_id) == [(a, 1), (c, 2)]
    assert fetch(Reservation, rc.id).position == 2
    assert fetch(Book, book_id).reservation_count == 2


def test_cancel_by_stranger_is_refused(queue, lent_book, make_user, fetch):
    book_id, _ = lent_book
    owner, stranger = make_user("Owner"), make_user("Stranger")
    reservation = queue.reserve(book_id, owner, now=NOW)
    with pytest.raises(NotOwnerError):
        queue.cancel(reservation.id, stranger)
    assert fetch(Reservation, reservation.id).status == ReservationStatus.ACTIVE


def test_cancel_by_staff(queue, lent_book, make_user, fetch):
    book_id, _ = lent_book
    owner = make_user("Owner")
    librarian = make_user("Librarian", role=Role.LIBRARIAN)
    reservation = queue.reserve(book_id, owner, now=NOW)
    queue.cancel(reservation.id, librarian)
    assert fetch(Reservation, reservation.id).status == ReservationStatus.CANCELLED


def test_cancel_twice(queue, lent_book, make_user):
    book_id, _ = lent_book
    owner = make_user()
    reservation = queue.reserve(book_id, owner, now=NOW)
    queue.cancel(reservation.id, owner)
    with pytest.raises(ReservationNotActiveError):
        queue.cancel(reservation.id, owner)


def test_cancel_unknown(queue, make_user):
    with pytest.raises(ReservationNotFoundError):
        queue.cancel("missing", make_user())


def test_return_earmarks_copy_for_head(circulation, queue, lent_book, make_user, fetch):
    book_id, holder = lent_book
    a, b = make_user("A"), make_user("B")
    ra = queue.reserve(book_id, a, now=NOW)
    queue.reserve(book_id, b, now=NOW + timedelta(minutes=1))

    returned_at = NOW + timedelta(days=3)
    result = circulation.return_book(book_id, holder, now=returned_at)

    assert result.reservation.id == ra.id
    book = fetch(Book, book_id)
    assert book.available_copies == 0
    head = fetch(Reservation, ra.id)
    assert head.status == ReservationStatus.FULFILLED
    assert head.expires_at == returned_at + HOLD
    assert _positions(queue, book_id) == [(b, 1)]
    ready = session.query(Notification).filter(
        Notification.type == EventType.RESERVATION_READY).one()
    assert ready.user_id == a
    assert InventoryLedger.is_conserved(book, borrowed=0, held=1)


def test_only_holder_can_borrow_earmarked_copy(circulation, queue, lent_book, make_user, fetch):
    book_id, holder = lent_book
    waiting, walk_in = make_user("Waiting"), make_user("Walk-in")
    reservation = queue.reserve(book_id, waiting, now=NOW)
    circulation.return_book(book_id, holder, now=NOW + timedelta(days=1))

    with pytest.raises(BookUnavailableError):
        circulation.borrow(book_id, walk_in, DUE + timedelta(days=7), now=NOW + timedelta(days=1))

    record = circulation.borrow(book_id, waiting, DUE + timedelta(days=7), now=NOW + timedelta(days=2))
    claimed = fetch(Reservation, reservation.id)
    assert claimed.status == ReservationStatus.FULFILLED
    assert claimed.borrowal_id == record.id
    assert fetch(Book, book_id).available_copies == 0


def test_expire_hold_releases_copy(circulation, queue, lent_book, make_user, fetch):
    book_id, holder = lent_book
    reservation = queue.reserve(book_id, make_user(), now=NOW)
    circulation.return_book(book_id, holder, now=NOW)

    assert queue.expire_hold(reservation.id, now=NOW + timedelta(hours=47)) is False
    assert queue.expire_hold(reservation.id, now=NOW + HOLD) is True
    expired = fetch(Reservation, reservation.id)
    assert expired.status == ReservationStatus.EXPIRED
    assert fetch(Book, book_id).available_copies == 1

    # a second expiry is a no-op
    assert queue.expire_hold(reservation.id, now=NOW + HOLD * 2) is False
    assert fetch(Book, book_id).available_copies == 1
    assert session.query(Notification).filter(
        Notification.type == EventType.RESERVATION_EXPIRED).count() == 1


def test_expired_hold_cascades_to_next(circulation, queue, lent_book, make_user, fetch):
    book_id, holder = lent_book
    first = queue.reserve(book_id, make_user("First"), now=NOW)
    second = queue.reserve(book_id, make_user("Second"), now=NOW + timedelta(minutes=1))
    circulation.return_book(book_id, holder, now=NOW)

    assert queue.expire_due_holds(now=NOW + HOLD + timedelta(minutes=1)) == 1

    assert fetch(Reservation, first.id).status == ReservationStatus.EXPIRED
    nxt = fetch(Reservation, second.id)
    assert nxt.status == ReservationStatus.FULFILLED
    assert nxt.expires_at == NOW + HOLD + timedelta(minutes=1) + HOLD
    assert fetch(Book, book_id).available_copies == 0


def test_borrow_releases_lapsed_hold(circulation, queue, lent_book, make_user, fetch):
    book_id, holder = lent_book
    reservation = queue.reserve(book_id, make_user("Sleepy"), now=NOW)
    circulation.return_book(book_id, holder, now=NOW)

    walk_in = make_user("Walk-in")
    later = NOW + HOLD + timedelta(hours=1)
    circulation.borrow(book_id, walk_in, later + timedelta(days=14), now=later)

    assert fetch(Reservation, reservation.id).status == ReservationStatus.EXPIRED
    assert fetch(Book, book_id).available_copies == 0


def test_borrowing_a_shelf_copy_leaves_the_queue(circulation, queue, make_book, make_user, fetch):
    book_id = make_book(copies=2)
    first, second = make_user("First"), make_user("Second")
    waiting, behind = make_user("Waiting"), make_user("Behind")
    circulation.borrow(book_id, first, DUE, now=NOW)
    circulation.borrow(book_id, second, DUE, now=NOW)
    reservation = queue.reserve(book_id, waiting, now=NOW)
    queue.reserve(book_id, behind, now=NOW + timedelta(minutes=1))

    # a new copy is catalogued while readers are still queued
    book = session.get(Book, book_id)
    book.total_copies += 1
    book.available_copies += 1
    session.commit()

    record = circulation.borrow(book_id, waiting, DUE, now=NOW + timedelta(hours=1))

    claimed = fetch(Reservation, reservation.id)
    assert claimed.status == ReservationStatus.FULFILLED
    assert claimed.borrowal_id == record.id
    assert _positions(queue, book_id) == [(behind, 1)]
    borrowed = session.query(BorrowRecord).filter(
        BorrowRecord.book_id == book_id,
        BorrowRecord.status == BorrowStatus.BORROWED).count()
    assert borrowed == 3
    assert InventoryLedger.is_conserved(fetch(Book, book_id), borrowed)

def test_fulfill_next_without_queue(queue, make_book):
    assert queue.fulfill_next(make_book(copies=1), now=NOW) is None


def test_scenario_a(circulation, queue, make_book, make_user, fetch):
    book_id = make_book(copies=1)
    user_a, user_b = make_user("A"), make_user("B")

    circulation.borrow(book_id, user_a, NOW + timedelta(days=14), now=NOW)
    book = fetch(Book, book_id)
    assert book.available_copies == 0

    reservation = queue.reserve(book_id, user_b, now=NOW)
    assert reservation.position == 1

    circulation.return_book(book_id, user_a, now=NOW + timedelta(days=2))
    assert fetch(Book, book_id).available_copies == 0
    held = fetch(Reservation, reservation.id)
    assert held.status == ReservationStatus.FULFILLED
    assert held.expires_at == NOW + timedelta(days=2) + HOLD
