"""Review endpoints.

Open a review for an OCR extraction, apply operator edits, inspect the
projected account impacts and issues, and confirm the batch.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from api.services.review_store import ReviewNotFoundError, ReviewStore, get_review_store
from connectors.ledger_client import CommitError, LedgerClient
from core.models.canonical import Account, OCRResult
from core.models.ledger import CommitResult, ConfirmBatchInput, DetailGroup, Issue
from entity_resolver.models import ClientCandidate
from reconciliation import session as review
from reconciliation.cross_validation import CrossValidationResult
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
from reconciliation.impact import group_details
from reconciliation.session import ReviewEvaluation, ReviewSession, SessionStatus
from reconciliation.summary import LocalityFilter, ReviewSummary, filter_localities


router = APIRouter()


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateReviewRequest(ApiModel):
    """Request to open a review for an extraction."""
    route_id: str = Field(..., description="Route the report belongs to")
    business_date: datetime = Field(..., description="Reporting day")
    result: OCRResult
    accounts: List[Account] = Field(default_factory=list)


class SourceAccountRequest(ApiModel):
    account_id: Optional[str] = None


class ImpactView(ApiModel):
    account_id: str
    account_name: str
    account_type: str
    current_balance: Decimal
    delta: Decimal
    projected_balance: Decimal
    detail_groups: List[DetailGroup] = Field(default_factory=list)


class ReviewView(ApiModel):
    """Current state of a review and everything derived from it."""
    session_id: str
    route_id: str
    business_date: str
    status: SessionStatus
    source_account_id: Optional[str] = None
    deleted_payments: List[List[int]] = Field(default_factory=list)
    deleted_loans: List[int] = Field(default_factory=list)
    overridden_payments: List[List[int]] = Field(default_factory=list)
    can_confirm: bool
    blocking_issues: List[Issue] = Field(default_factory=list)
    warnings: List[Issue] = Field(default_factory=list)
    impacts: List[ImpactView] = Field(default_factory=list)
    cross_validation: CrossValidationResult
    summary: ReviewSummary


class BatchNotReadyDetail(ApiModel):
    message: str
    blocking_issues: List[Issue]


# =============================================================================
# Dependencies & Helpers
# =============================================================================

async def get_ledger_client() -> AsyncGenerator[LedgerClient, None]:
    """Ledger client for one request."""
    async with LedgerClient() as client:
        yield client


def _http_error(e: ReconciliationError) -> HTTPException:
    if isinstance(e, ReviewNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (InvalidPaymentKeyError, InvalidLoanIndexError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, UnknownAccountError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, BatchNotReadyError):
        detail = BatchNotReadyDetail(message=str(e), blocking_issues=e.issues)
        return HTTPException(status_code=409, detail=detail.model_dump(by_alias=True, mode="json"))
    if isinstance(e, (CandidateRejectedError, CommitInFlightError, SessionClosedError)):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _apply(store: ReviewStore, review_id: str, action, *args) -> ReviewSession:
    try:
        return store.apply(review_id, action, *args)
    except ReconciliationError as e:
        raise _http_error(e)


def _get(store: ReviewStore, review_id: str) -> ReviewSession:
    try:
        return store.get(review_id)
    except ReconciliationError as e:
        raise _http_error(e)


def build_review_view(
    session: ReviewSession,
    evaluation: ReviewEvaluation,
    locality_filter: LocalityFilter = LocalityFilter.ALL,
) -> ReviewView:
    summary = evaluation.summary
    if locality_filter != LocalityFilter.ALL:
        summary = summary.model_copy(update={"localities": filter_localities(summary, locality_filter)})

    overlay = session.overlay
    return ReviewView(
        session_id=session.session_id,
        route_id=session.route_id,
        business_date=session.business_date_iso,
        status=session.status,
        source_account_id=session.source_account_id,
        deleted_payments=[list(k) for k in sorted(overlay.deleted_payments)],
        deleted_loans=sorted(overlay.deleted_loans),
        overridden_payments=[list(k) for k in overlay.overridden_keys],
        can_confirm=evaluation.can_confirm,
        blocking_issues=evaluation.blocking_issues,
        warnings=evaluation.warnings,
        impacts=[
            ImpactView(
                account_id=i.account_id,
                account_name=i.account_name,
                account_type=i.account_type,
                current_balance=i.current_balance,
                delta=i.delta,
                projected_balance=i.projected_balance,
                detail_groups=group_details(i.details),
            )
            for i in evaluation.impacts
        ],
        cross_validation=evaluation.cross_validation,
        summary=summary,
    )


def _view(session: ReviewSession) -> ReviewView:
    return build_review_view(session, review.evaluate(session))


# =============================================================================
# Endpoints
# =============================================================================

@router.post("", response_model=ReviewView, response_model_by_alias=True, status_code=201)
async def create_review(
    request: CreateReviewRequest,
    store: ReviewStore = Depends(get_review_store),
) -> ReviewView:
    """Open a review for an extraction and account snapshot."""
    session = review.open_review(
        request.result,
        request.accounts,
        request.route_id,
        request.business_date,
    )
    store.add(session)
    return _view(session)


@router.get("/{review_id}", response_model=ReviewView, response_model_by_alias=True)
async def get_review(
    review_id: str,
    locality_filter: LocalityFilter = Query(LocalityFilter.ALL, alias="filter"),
    store: ReviewStore = Depends(get_review_store),
) -> ReviewView:
    """Evaluate a review: impacts, issues and per-locality summary."""
    session = _get(store, review_id)
    return build_review_view(session, review.evaluate(session), locality_filter)


@router.post("/{review_id}/payments/{group_index}/{line_index}/delete",
             response_model=ReviewView, response_model_by_alias=True)
async def delete_payment(
    review_id: str,
    group_index: int,
    line_index: int,
    store: ReviewStore = Depends(get_review_store),
) -> ReviewView:
    return _view(_apply(store, review_id, review.delete_payment, (group_index, line_index)))


@router.post("/{review_id}/payments/{group_index}/{line_index}/restore",
             response_model=ReviewView, response_model_by_alias=True)
async def restore_payment(
    review_id: str,
    group_index: int,
    line_index: int,
    store: ReviewStore = Depends(get_review_store),
) -> ReviewView:
    return _view(_apply(store, review_id, review.restore_payment, (group_index, line_index)))


@router.post("/{review_id}/payments/{group_index}/{line_index}/assign",
             response_model=ReviewView, response_model_by_alias=True)
async def assign_payment(
    review_id: str,
    group_index: int,
    line_index: int,
    candidate: ClientCandidate,
    store: ReviewStore = Depends(get_review_store),
) -> ReviewView:
    """Reassign a payment line to a client picked by the operator.

    Returns 409 when the client has no active loan.
    """
    return _view(_apply(
        store, review_id, review.assign_payment_client, (group_index, line_index), candidate
    ))


@router.post("/{review_id}/loans/{loan_index}/delete",
             response_model=ReviewView, response_model_by_alias=True)
async def delete_loan(
    review_id: str,
    loan_index: int,
    store: ReviewStore = Depends(get_review_store),
) -> ReviewView:
    return _view(_apply(store, review_id, review.delete_loan, loan_index))


@router.post("/{review_id}/loans/{loan_index}/restore",
             response_model=ReviewView, response_model_by_alias=True)
async def restore_loan(
    review_id: str,
    loan_index: int,
    store: ReviewStore = Depends(get_review_store),
) -> ReviewView:
    return _view(_apply(store, review_id, review.restore_loan, loan_index))


@router.put("/{review_id}/source-account", response_model=ReviewView, response_model_by_alias=True)
async def select_source_account(
    review_id: str,
    request: SourceAccountRequest,
    store: ReviewStore = Depends(get_review_store),
) -> ReviewView:
    """Pick the account loans are disbursed from."""
    return _view(_apply(store, review_id, review.select_source_account, request.account_id))


@router.get("/{review_id}/batch")
async def get_batch(
    review_id: str,
    store: ReviewStore = Depends(get_review_store),
) -> Dict[str, Any]:
    """Preview the commit payload. 409 while blocking issues remain."""
    session = _get(store, review_id)
    try:
        batch_input: ConfirmBatchInput = review.build_confirm_input(session)
    except ReconciliationError as e:
        raise _http_error(e)
    return batch_input.model_dump(by_alias=True, exclude_none=True, mode="json")


@router.post("/{review_id}/confirm", response_model=CommitResult, response_model_by_alias=True)
async def confirm_review(
    review_id: str,
    store: ReviewStore = Depends(get_review_store),
    client: LedgerClient = Depends(get_ledger_client),
) -> CommitResult:
    """Commit the review.

    409 if blocked or already committing; 502 if the ledger did not save
    the batch, with its message.
    """
    try:
        return await store.commit(review_id, client)
    except ReconciliationError as e:
        raise _http_error(e)
    except CommitError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.delete("/{review_id}", status_code=204)
async def discard_review(
    review_id: str,
    store: ReviewStore = Depends(get_review_store),
) -> None:
    try:
        store.discard(review_id)
    except ReconciliationError as e:
        raise _http_error(e)
