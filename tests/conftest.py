#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.conftest
    ~~~~~~~~~~~~~~

    Shared fixtures: a throwaway SQLite database per test and small
    factories for books and readers.

    :copyright: (c) 2015 by Authors.
    :license: see LICENSE for more details.
"""

import os
os.environ["TESTING"] = "true"

from datetime import datetime
from decimal import Decimal
import pytest
from folio.core.db import Base, make_engine, rebind, session
from folio.core.models import Book, User, Role, new_id

NOW = datetime(2026, 3, 2, 12, 0, 0)


@pytest.fixture(autouse=True)
def engine(tmp_path):
    # file-backed so request threads and worker threads share one database
    engine = make_engine(f"sqlite:///{tmp_path / 'folio.db'}")
    rebind(engine)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        session.remove()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def fetch():
    """Reads a record fresh from the database."""
    def _fetch(model, key):
        session.expire_all()
        return session.get(model, key)
    return _fetch


@pytest.fixture
def make_book():
    def _make(title="The Dispossessed", copies=1, available=None, late_fee_per_day=None):
        book = Book(
            id=new_id(),
            title=title,
            total_copies=copies,
            available_copies=copies if available is None else available,
            late_fee_per_day=Decimal(late_fee_per_day) if late_fee_per_day else None,
        )
        session.add(book)
        session.commit()
        return book.id
    return _make


@pytest.fixture
def make_user():
    def _make(name="Reader", role=Role.MEMBER, email=None):
        user = User(
            id=new_id(),
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.org",
            role=role,
        )
        session.add(user)
        session.commit()
        return user.id
    return _make
