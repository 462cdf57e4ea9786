#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.test_fees
    ~~~~~~~~~~~~~~~

    Late fee arithmetic.

    :copyright: (c) 2015 by Authors.
    :license: see LICENSE for more details.
"""

from datetime import datetime, timedelta
from decimal import Decimal
import pytest
from folio.core.fees import LateFeeCalculator

DUE = datetime(2026, 3, 1, 17, 0, 0)


@pytest.fixture
def fees():
    return LateFeeCalculator(default_rate=Decimal('1.00'), max_days=90, max_fee=Decimal('50.00'))


def test_three_days_late(fees):
    amount, days = fees.compute_fee(DUE, DUE + timedelta(days=3))
    assert amount == Decimal('3.00')
    assert days == 3


@pytest.mark.parametrize("returned", [
    DUE - timedelta(days=2),
    DUE,
    DUE + timedelta(hours=23, minutes=59),
])
def test_on_time_is_free(fees, returned):
    assert fees.compute_fee(DUE, returned) == (Decimal('0.00'), 0)


def test_partial_days_are_floored(fees):
    amount, days = fees.compute_fee(DUE, DUE + timedelta(days=2, hours=20))
    assert (amount, days) == (Decimal('2.00'), 2)


def test_book_rate_overrides_default(fees):
    amount, days = fees.compute_fee(DUE, DUE + timedelta(days=5), Decimal('2.00'))
    assert amount == Decimal('10.00')
    assert days == 5


def test_fractional_rate_rounds_to_cents(fees):
    amount, _ = fees.compute_fee(DUE, DUE + timedelta(days=3), Decimal('0.335'))
    assert amount == Decimal('1.02')


def test_fee_capped_by_days(fees):
    amount, days = fees.compute_fee(DUE, DUE + timedelta(days=120), Decimal('0.25'))
    assert amount == Decimal('22.50')
    assert days == 120


def test_fee_capped_by_amount(fees):
    amount, days = fees.compute_fee(DUE, DUE + timedelta(days=60))
    assert amount == Decimal('50.00')
    assert days == 60


def test_zero_caps_disable_limits():
    fees = LateFeeCalculator(default_rate=Decimal('1.00'), max_days=0, max_fee=0)
    amount, days = fees.compute_fee(DUE, DUE + timedelta(days=120))
    assert amount == Decimal('120.00')
    assert days == 120
