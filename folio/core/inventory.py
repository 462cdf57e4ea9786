#!/usr/bin/env python

"""
    Inventory ledger for Folio: the single source of truth for how many
    copies of a book are on the shelf.

    Every method expects a `Book` read inside the caller's transaction;
    nothing here commits, so changes become visible only when the
    enclosing `atomic()` block does.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from folio.core.models import Book, BookStatus
from folio.core.exceptions import BookUnavailableError

logger = logging.getLogger(__name__)


class InventoryLedger:

    @classmethod
    def _sync_status(cls, book: Book):
        book.status = BookStatus.BORROWED if book.available_copies == 0 else BookStatus.AVAILABLE

    @classmethod
    def decrement_available(cls, book: Book) -> Book:
        if book.available_copies <= 0:
            raise BookUnavailableError("No copies of this book are available.")
        book.available_copies -= 1
        cls._sync_status(book)
        return book

    @classmethod
    def increment_available(cls, book: Book) -> Book:
        if book.available_copies >= book.total_copies:
            logger.warning(
                f"Book {book.id} already has all {book.total_copies} copies on the shelf")
        book.available_copies = min(book.available_copies + 1, book.total_copies)
        cls._sync_status(book)
        return book

    @classmethod
    def is_conserved(cls, book: Book, borrowed: int, held: int = 0) -> bool:
        """True when `available + borrowed + held == total` for `book`."""
        return book.available_copies + borrowed + held == book.total_copies
