"""
Circulation Module for BookLedger

The borrow/return lifecycle:
- CirculationService: borrow, return, active-borrow checks, history
- LoanPolicy: due dates and overdue state
"""

from bookledger.circulation.policy import (
    LoanPolicy,
    DEFAULT_LOAN_DAYS,
)
from bookledger.circulation.lifecycle import CirculationService

__all__ = [
    "LoanPolicy",
    "DEFAULT_LOAN_DAYS",
    "CirculationService",
]
