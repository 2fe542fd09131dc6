"""
Loan period and overdue rules.

Due dates use calendar days. A business-day calendar would be a
``LoanPolicy`` subclass overriding ``due_date``.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Optional

from bookledger.storage.models import BorrowStatus

DEFAULT_LOAN_DAYS = 7


@dataclass(frozen=True)
class LoanPolicy:
    """Computes due dates and overdue state for borrow records."""

    loan_days: int = DEFAULT_LOAN_DAYS
    clock: Callable[[], date] = date.today

    def __post_init__(self):
        if self.loan_days < 1:
            raise ValueError(f"loan_days must be positive, got {self.loan_days}")

    def today(self) -> date:
        return self.clock()

    def due_date(self, borrow_date: date) -> date:
        """Borrow date plus the loan period, in calendar days."""
        return borrow_date + timedelta(days=self.loan_days)

    def is_overdue(
        self,
        status: str,
        due_date: date,
        today: Optional[date] = None,
    ) -> bool:
        """Active and strictly past its due date."""
        today = today or self.today()
        return status == BorrowStatus.BORROWED.value and today > due_date
