"""Review session: one extraction under operator review.

A ReviewSession is a value. Every operator action returns a new session and
every derived view (effective dataset, impacts, issues, summary) is
recomputed from it by `evaluate`. Nothing is cached across edits.

Commit lifecycle:

    OPEN --begin_commit--> COMMITTING --complete_commit--> COMMITTED
                               |
                               +--abort_commit--> OPEN (edits kept)
"""

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from core.models.canonical import Account, AccountType, OCRResult, find_account_by_type
from core.models.ledger import AccountImpact, ConfirmBatchInput, Issue
from core.observability.logging import get_logger, log_review_event, with_correlation
from entity_resolver.models import ClientCandidate
from entity_resolver.resolver import ClientMatcher
from reconciliation import batch
from reconciliation.cross_validation import CrossValidationResult, cross_validate
from reconciliation.engine import GateResult, evaluate_gate
from reconciliation.errors import (
    BatchNotReadyError,
    CandidateRejectedError,
    CommitInFlightError,
    InvalidLoanIndexError,
    InvalidPaymentKeyError,
    SessionClosedError,
    UnknownAccountError,
)
from reconciliation.impact import compute_account_impacts, orphan_account_ids
from reconciliation.overlay import EditOverlay, EffectiveDataset, PaymentKey, project_effective
from reconciliation.summary import ReviewSummary, summarize

logger = get_logger(__name__)


class SessionStatus(str, Enum):
    OPEN = "OPEN"
    COMMITTING = "COMMITTING"
    COMMITTED = "COMMITTED"


@dataclass(frozen=True)
class ReviewSession:
    session_id: str
    route_id: str
    business_date: batch.BusinessDate
    result: OCRResult
    accounts: Tuple[Account, ...] = ()
    overlay: EditOverlay = field(default_factory=EditOverlay)
    source_account_id: Optional[str] = None
    status: SessionStatus = SessionStatus.OPEN

    @property
    def business_date_iso(self) -> str:
        return batch.format_business_date(self.business_date)

    def correlation(self, stage: str):
        return with_correlation(
            review_session_id=self.session_id,
            route_id=self.route_id,
            business_date=self.business_date_iso,
            stage=stage,
        )


@dataclass(frozen=True)
class ReviewEvaluation:
    """Everything derived from a session at one point in time."""
    effective: EffectiveDataset
    impacts: List[AccountImpact]
    cross_validation: CrossValidationResult
    gate: GateResult
    summary: ReviewSummary

    @property
    def can_confirm(self) -> bool:
        return self.gate.can_confirm

    @property
    def blocking_issues(self) -> List[Issue]:
        return self.gate.blocking

    @property
    def warnings(self) -> List[Issue]:
        return self.gate.warnings


# =============================================================================
# Opening
# =============================================================================

def open_review(
    result: OCRResult,
    accounts: Sequence[Account],
    route_id: str,
    business_date: batch.BusinessDate,
    session_id: Optional[str] = None,
) -> ReviewSession:
    """Start reviewing an extraction.

    The first employee cash fund in the snapshot becomes the default source
    account for disbursements.
    """
    cash_fund = find_account_by_type(accounts, AccountType.EMPLOYEE_CASH_FUND)
    session = ReviewSession(
        session_id=session_id or str(uuid.uuid4()),
        route_id=route_id,
        business_date=business_date,
        result=result,
        accounts=tuple(accounts),
        source_account_id=cash_fund.id if cash_fund else None,
    )
    with session.correlation("open"):
        log_review_event(
            "Review opened",
            payment_groups=len(result.payments),
            loans=len(result.loans),
            expenses=len(result.expenses),
            source_account_id=session.source_account_id,
        )
    return session


# =============================================================================
# Operator Actions
# =============================================================================

def _ensure_editable(session: ReviewSession) -> None:
    if session.status == SessionStatus.COMMITTING:
        raise CommitInFlightError(f"Review {session.session_id} is being committed")
    if session.status == SessionStatus.COMMITTED:
        raise SessionClosedError(f"Review {session.session_id} was already committed")


def _check_payment_key(session: ReviewSession, key: PaymentKey) -> PaymentKey:
    group_idx, line_idx = key
    payments = session.result.payments
    if not 0 <= group_idx < len(payments):
        raise InvalidPaymentKeyError(key)
    if not 0 <= line_idx < len(payments[group_idx].client_payments):
        raise InvalidPaymentKeyError(key)
    return (group_idx, line_idx)


def _check_loan_index(session: ReviewSession, index: int) -> int:
    if not 0 <= index < len(session.result.loans):
        raise InvalidLoanIndexError(index)
    return index


def _with_overlay(session: ReviewSession, overlay: EditOverlay, action: str, **fields) -> ReviewSession:
    updated = replace(session, overlay=overlay)
    with session.correlation("edit"):
        log_review_event(action, **fields)
    return updated


def delete_payment(session: ReviewSession, key: PaymentKey) -> ReviewSession:
    _ensure_editable(session)
    key = _check_payment_key(session, key)
    return _with_overlay(session, session.overlay.delete_payment(key), "Payment deleted", key=key)


def restore_payment(session: ReviewSession, key: PaymentKey) -> ReviewSession:
    _ensure_editable(session)
    key = _check_payment_key(session, key)
    return _with_overlay(session, session.overlay.restore_payment(key), "Payment restored", key=key)


def assign_payment_client(
    session: ReviewSession,
    key: PaymentKey,
    candidate: ClientCandidate,
    matcher: Optional[ClientMatcher] = None,
) -> ReviewSession:
    """Reassign a payment line to an operator-picked client.

    Raises:
        CandidateRejectedError: The candidate has no active loan
    """
    _ensure_editable(session)
    key = _check_payment_key(session, key)
    matcher = matcher or ClientMatcher()

    line = session.result.payments[key[0]].client_payments[key[1]]
    reassignment = matcher.reassign(line, candidate)
    if not reassignment.accepted:
        raise CandidateRejectedError(reassignment.reason or "Candidate rejected")

    return _with_overlay(
        session,
        session.overlay.assign_payment(key, reassignment.match),
        "Payment reassigned",
        key=key,
        borrower_id=candidate.borrower_id,
        loan_id=reassignment.match.resolved_loan_id,
    )


def delete_loan(session: ReviewSession, index: int) -> ReviewSession:
    _ensure_editable(session)
    index = _check_loan_index(session, index)
    return _with_overlay(session, session.overlay.delete_loan(index), "Loan deleted", index=index)


def restore_loan(session: ReviewSession, index: int) -> ReviewSession:
    _ensure_editable(session)
    index = _check_loan_index(session, index)
    return _with_overlay(session, session.overlay.restore_loan(index), "Loan restored", index=index)


def select_source_account(session: ReviewSession, account_id: Optional[str]) -> ReviewSession:
    """Designate the account loans are disbursed from (None clears it)."""
    _ensure_editable(session)
    if account_id is not None and account_id not in {a.id for a in session.accounts}:
        raise UnknownAccountError(account_id)
    with session.correlation("edit"):
        log_review_event("Source account selected", source_account_id=account_id)
    return replace(session, source_account_id=account_id)


# =============================================================================
# Evaluation
# =============================================================================

def effective_dataset(session: ReviewSession) -> EffectiveDataset:
    return project_effective(session.result, session.overlay)


def evaluate(session: ReviewSession) -> ReviewEvaluation:
    """Recompute every derived view of the session."""
    with session.correlation("evaluate"):
        effective = effective_dataset(session)
        impacts = compute_account_impacts(session.accounts, effective, session.source_account_id)
        xv = cross_validate(session.result.cross_validation, session.accounts, impacts)
        gate = evaluate_gate(
            effective,
            impacts,
            session.source_account_id,
            cross_validation=xv,
            extraction_warnings=session.result.warnings,
            orphan_account_ids=orphan_account_ids(session.accounts, effective),
        )
        logger.debug(
            "Gate evaluated",
            extra_fields={
                "status": gate.status.value,
                "blocking": len(gate.blocking),
                "warnings": len(gate.warnings),
            },
        )
        return ReviewEvaluation(
            effective=effective,
            impacts=impacts,
            cross_validation=xv,
            gate=gate,
            summary=summarize(effective),
        )


def build_confirm_input(session: ReviewSession) -> ConfirmBatchInput:
    """Commit payload for the session.

    Raises:
        BatchNotReadyError: Blocking issues remain
    """
    evaluation = evaluate(session)
    if not evaluation.can_confirm:
        raise BatchNotReadyError(evaluation.blocking_issues)
    return batch.build_confirm_input(
        evaluation.effective,
        session.route_id,
        session.business_date,
        session.source_account_id,
    )


# =============================================================================
# Commit Lifecycle
# =============================================================================

def begin_commit(session: ReviewSession) -> ReviewSession:
    """Mark the session as committing. Only one commit may be in flight."""
    _ensure_editable(session)
    with session.correlation("commit"):
        log_review_event("Commit started")
    return replace(session, status=SessionStatus.COMMITTING)


def complete_commit(session: ReviewSession) -> ReviewSession:
    with session.correlation("commit"):
        log_review_event("Commit completed")
    return replace(session, status=SessionStatus.COMMITTED)


def abort_commit(session: ReviewSession, reason: str = "") -> ReviewSession:
    """Return to OPEN after a failed commit, keeping extraction and edits."""
    with session.correlation("commit"):
        logger.warning("Commit failed, review reopened", extra_fields={"reason": reason})
    return replace(session, status=SessionStatus.OPEN)
