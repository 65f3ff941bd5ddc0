"""Commit payload builder.

Turns the effective dataset into a ConfirmBatchInput. Lines that are not
ready are filtered out rather than raising; the gate has already reported
them as blocking issues by the time a payload is sent.
"""

from datetime import date, datetime, time, timezone
from typing import List, Optional, Union

from core.models.canonical import ExpenseLine, LoanLine, PaymentGroup, PaymentMethod
from core.models.ledger import (
    ClientPaymentInput,
    ConfirmBatchInput,
    ExpenseBatchInput,
    LoanBatchInput,
    PaymentBatchInput,
)
from core.money import format_amount, sum_amounts
from reconciliation.impact import matched_paying_lines, is_group_postable, postable_expenses, ready_loans
from reconciliation.overlay import EffectiveDataset


BusinessDate = Union[datetime, date, str]


def format_business_date(value: BusinessDate) -> str:
    """ISO-8601 UTC timestamp with a Z suffix.

    Naive datetimes are taken as UTC and dates as midnight UTC. Strings are
    passed through unchanged.
    """
    if isinstance(value, str):
        return value
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def first_leader_id(payments) -> Optional[str]:
    for group in payments:
        if group.resolved_leader_id:
            return group.resolved_leader_id
    return None


def _payment_method(value) -> str:
    if value == PaymentMethod.MONEY_TRANSFER:
        return PaymentMethod.MONEY_TRANSFER.value
    return PaymentMethod.CASH.value


def build_payment_entry(group: PaymentGroup) -> PaymentBatchInput:
    lines = matched_paying_lines(group)
    return PaymentBatchInput(
        lead_id=group.resolved_leader_id,
        expected_amount=format_amount(group.cobranza_total),
        paid_amount=format_amount(sum_amounts(cp.paid_amount for cp in lines)),
        cash_paid_amount=format_amount(group.cash_total),
        bank_paid_amount=format_amount(group.bank_total),
        falco_amount=format_amount(group.falco_amount) if group.falco_amount > 0 else None,
        client_payments=[
            ClientPaymentInput(
                loan_id=cp.resolved_loan_id,
                amount=format_amount(cp.paid_amount),
                comission=format_amount(cp.comission),
                payment_method=_payment_method(cp.payment_method),
            )
            for cp in lines
        ],
    )


def build_loan_entry(loan: LoanLine, lead_id: str) -> LoanBatchInput:
    new_borrower_name = None
    if not loan.resolved_borrower_id and loan.is_new_client:
        new_borrower_name = loan.client_name
    return LoanBatchInput(
        requested_amount=format_amount(loan.credit_amount),
        amount_gived=format_amount(loan.delivered_amount),
        loantype_id=loan.resolved_loantype_id,
        borrower_id=loan.resolved_borrower_id,
        new_borrower_name=new_borrower_name,
        previous_loan_id=loan.resolved_previous_loan_id if loan.is_renewal else None,
        lead_id=lead_id,
    )


def build_expense_entry(expense: ExpenseLine) -> ExpenseBatchInput:
    description = " - ".join(part for part in (expense.establishment, expense.notes) if part)
    return ExpenseBatchInput(
        amount=format_amount(expense.amount),
        expense_source=expense.resolved_source_type,
        source_account_id=expense.resolved_account_id,
        description=description or None,
    )


def build_confirm_input(
    effective: EffectiveDataset,
    route_id: str,
    business_date: BusinessDate,
    source_account_id: Optional[str] = None,
) -> ConfirmBatchInput:
    """Build the commit payload for an effective dataset.

    Same input always yields the same payload, in extraction order.
    """
    payments: List[PaymentBatchInput] = [
        build_payment_entry(g) for g in effective.payments if is_group_postable(g)
    ]

    lead_id = first_leader_id(effective.payments) or ""
    loans: List[LoanBatchInput] = [
        build_loan_entry(loan, lead_id) for loan in ready_loans(effective.loans)
    ]

    expenses: List[ExpenseBatchInput] = [
        build_expense_entry(e) for e in postable_expenses(effective.expenses)
    ]

    return ConfirmBatchInput(
        route_id=route_id,
        business_date=format_business_date(business_date),
        source_account_id=source_account_id if loans else None,
        payments=payments,
        loans=loans,
        expenses=expenses,
    )
