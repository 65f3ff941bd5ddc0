"""Exceptions raised by review sessions.

The pure computations (overlay projection, impacts, gate, batch builder)
never raise for data quality problems; these are for invalid operator
actions and for the commit boundary.
"""

from typing import List, Optional


class ReconciliationError(Exception):
    """Base exception for review session errors."""
    pass


class InvalidPaymentKeyError(ReconciliationError):
    """Payment key does not address a line of the extraction."""
    def __init__(self, key):
        super().__init__(f"No client payment at group {key[0]}, line {key[1]}")
        self.key = key


class InvalidLoanIndexError(ReconciliationError):
    """Loan index is out of range for the extraction."""
    def __init__(self, index: int):
        super().__init__(f"No loan at index {index}")
        self.index = index


class UnknownAccountError(ReconciliationError):
    """Account id is not part of the session's account snapshot."""
    def __init__(self, account_id: str):
        super().__init__(f"Account {account_id} is not in the account snapshot")
        self.account_id = account_id


class CandidateRejectedError(ReconciliationError):
    """Operator picked a candidate that cannot be assigned."""
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class BatchNotReadyError(ReconciliationError):
    """Commit requested while blocking issues remain."""
    def __init__(self, issues: Optional[List] = None):
        issues = issues or []
        messages = "; ".join(i.message for i in issues)
        super().__init__(f"Batch has {len(issues)} blocking issue(s): {messages}")
        self.issues = issues


class CommitInFlightError(ReconciliationError):
    """A commit for this session is already outstanding."""
    pass


class SessionClosedError(ReconciliationError):
    """The session was already committed."""
    pass
