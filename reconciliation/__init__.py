"""Reconciliation of an OCR extraction against the ledger.

Pipeline: edit overlay -> effective dataset -> account impacts ->
cross-validation -> issue gate -> commit payload.
"""

from reconciliation.batch import build_confirm_input, format_business_date
from reconciliation.cross_validation import CrossValidationResult, cross_validate
from reconciliation.engine import CheckStatus, GateResult, evaluate_gate
from reconciliation.errors import (
    BatchNotReadyError,
    CandidateRejectedError,
    CommitInFlightError,
    InvalidLoanIndexError,
    InvalidPaymentKeyError,
    ReconciliationError,
    SessionClosedError,
    UnknownAccountError,
)
from reconciliation.impact import compute_account_impacts, group_details
from reconciliation.overlay import EditOverlay, EffectiveDataset, project_effective
from reconciliation.session import ReviewEvaluation, ReviewSession, SessionStatus, evaluate, open_review
from reconciliation.summary import LocalityFilter, LocalityStatus, ReviewSummary, filter_localities, summarize

__all__ = [
    "BatchNotReadyError",
    "CandidateRejectedError",
    "CheckStatus",
    "CommitInFlightError",
    "CrossValidationResult",
    "EditOverlay",
    "EffectiveDataset",
    "GateResult",
    "InvalidLoanIndexError",
    "InvalidPaymentKeyError",
    "LocalityFilter",
    "LocalityStatus",
    "ReconciliationError",
    "ReviewEvaluation",
    "ReviewSession",
    "ReviewSummary",
    "SessionClosedError",
    "SessionStatus",
    "UnknownAccountError",
    "build_confirm_input",
    "compute_account_impacts",
    "cross_validate",
    "evaluate",
    "evaluate_gate",
    "filter_localities",
    "format_business_date",
    "group_details",
    "open_review",
    "project_effective",
    "summarize",
]
