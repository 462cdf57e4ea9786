from collections import namedtuple
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from folio.configs import LATE_FEE_PER_DAY, MAX_LATE_DAYS, MAX_LATE_FEE
from folio.core.utils import money

FeeAssessment = namedtuple('FeeAssessment', ['amount', 'days_late'])

ONE_DAY = timedelta(days=1)


class LateFeeCalculator:
    """Pure late fee arithmetic.

    `days_late` is the number of whole days elapsed past the due date
    (never negative). The fee charges `per_day_rate` for each of those
    days, limited to `max_days` days and `max_fee` in total; a zero
    limit disables it.
    """

    def __init__(self, default_rate=LATE_FEE_PER_DAY, max_days=MAX_LATE_DAYS, max_fee=MAX_LATE_FEE):
        self.default_rate = money(default_rate)
        self.max_days = max_days or None
        self.max_fee = money(max_fee) if max_fee else None

    @staticmethod
    def days_late(due_date: datetime, returned_at: datetime) -> int:
        return max(0, (returned_at - due_date) // ONE_DAY)

    def compute_fee(self, due_date: datetime, returned_at: datetime,
                    per_day_rate: Optional[Decimal] = None) -> FeeAssessment:
        days = self.days_late(due_date, returned_at)
        if days <= 0:
            return FeeAssessment(money(0), 0)
        rate = money(per_day_rate) if per_day_rate is not None else self.default_rate
        chargeable = min(days, self.max_days) if self.max_days else days
        amount = money(chargeable * rate)
        if self.max_fee is not None:
            amount = min(amount, self.max_fee)
        return FeeAssessment(amount, days)
