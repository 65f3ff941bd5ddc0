"""Reviewer-facing summary of a batch: totals and per-locality status."""

from decimal import Decimal
from enum import Enum
from typing import List, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.models.canonical import LoanLine, PaymentGroup, PaymentMethod
from core.money import ZERO, format_currency, sum_amounts
from reconciliation.impact import (
    group_commissions,
    group_loans_by_locality,
    matched_paying_lines,
    postable_expenses,
    ready_loans,
)
from reconciliation.overlay import EffectiveDataset


class LocalityStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


class LocalityFilter(str, Enum):
    ALL = "all"
    OK = "ok"
    ISSUES = "issues"


class SummaryBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class LocalitySummary(SummaryBase):
    name: str
    status: LocalityStatus = LocalityStatus.OK
    issues: List[str] = Field(default_factory=list)
    paying_count: int = 0
    not_paying_count: int = 0
    unmatched_count: int = 0
    loans: List[LoanLine] = Field(default_factory=list)
    cash_balance: Decimal = ZERO
    bank_balance: Decimal = ZERO
    client_deposits: Decimal = ZERO


class BatchTotals(SummaryBase):
    collections: Decimal = ZERO
    cash: Decimal = ZERO
    bank: Decimal = ZERO
    client_deposits: Decimal = ZERO
    commissions: Decimal = ZERO
    loans_delivered: Decimal = ZERO
    expenses: Decimal = ZERO
    payment_count: int = 0


class ReviewSummary(SummaryBase):
    totals: BatchTotals
    localities: List[LocalitySummary] = Field(default_factory=list)
    loans_without_locality: List[LoanLine] = Field(default_factory=list)

    @property
    def ok_count(self) -> int:
        return sum(1 for loc in self.localities if loc.status == LocalityStatus.OK)

    @property
    def issue_count(self) -> int:
        return len(self.localities) - self.ok_count


def client_deposits(group: PaymentGroup) -> Decimal:
    """Paid lines the client transferred directly."""
    return sum_amounts(
        cp.paid_amount
        for cp in group.client_payments
        if cp.paid and cp.payment_method == PaymentMethod.MONEY_TRANSFER
    )


def locality_status(group: PaymentGroup):
    """Status and issue messages for one locality.

    Missing leader or unmatched paid lines are errors; everything else is a
    warning.
    """
    errors = []
    warnings = []

    if not group.resolved_leader_id:
        errors.append("Líder no identificado")

    unmatched = sum(1 for cp in group.client_payments if cp.paid and not cp.is_matched)
    if unmatched:
        errors.append(f"{unmatched} pago(s) sin match")

    warnings.extend(w.message for w in group.warnings if w.message)

    if group.falco_amount > 0:
        warnings.append(f"FALCO: {format_currency(group.falco_amount)}")

    if any(cp.amount_warning for cp in group.client_payments):
        warnings.append("Diferencias en montos de abono")

    if errors:
        return LocalityStatus.ERROR, errors + warnings
    if warnings:
        return LocalityStatus.WARNING, warnings
    return LocalityStatus.OK, []


def summarize_locality(group: PaymentGroup, loans: Sequence[LoanLine]) -> LocalitySummary:
    status, issues = locality_status(group)
    lines = group.client_payments
    return LocalitySummary(
        name=group.locality_name,
        status=status,
        issues=issues,
        paying_count=sum(1 for cp in lines if cp.paid),
        not_paying_count=sum(1 for cp in lines if not cp.paid),
        unmatched_count=sum(1 for cp in lines if cp.paid and not cp.is_matched),
        loans=list(loans),
        cash_balance=group.cash_total - group_commissions(group) - group.falco_amount,
        bank_balance=group.bank_total,
        client_deposits=client_deposits(group),
    )


def summarize(effective: EffectiveDataset) -> ReviewSummary:
    """Totals and per-locality breakdown of the effective dataset."""
    payments = effective.payments
    by_locality, unassigned = group_loans_by_locality(effective.loans)

    cash = sum_amounts(g.cash_total for g in payments)
    bank = sum_amounts(g.bank_total for g in payments)
    totals = BatchTotals(
        collections=cash + bank,
        cash=cash,
        bank=bank,
        client_deposits=sum_amounts(client_deposits(g) for g in payments),
        commissions=sum_amounts(group_commissions(g) for g in payments),
        loans_delivered=sum_amounts(loan.delivered_amount for loan in ready_loans(effective.loans)),
        expenses=sum_amounts(e.amount for e in postable_expenses(effective.expenses)),
        payment_count=sum(len(matched_paying_lines(g)) for g in payments),
    )

    localities = [
        summarize_locality(g, by_locality.get(g.locality_name, []))
        for g in payments
    ]

    return ReviewSummary(
        totals=totals,
        localities=localities,
        loans_without_locality=unassigned,
    )


def filter_localities(summary: ReviewSummary, locality_filter: LocalityFilter) -> List[LocalitySummary]:
    if locality_filter == LocalityFilter.OK:
        return [loc for loc in summary.localities if loc.status == LocalityStatus.OK]
    if locality_filter == LocalityFilter.ISSUES:
        return [loc for loc in summary.localities if loc.status != LocalityStatus.OK]
    return list(summary.localities)
