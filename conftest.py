"""Shared builders and fixtures for the reconciliation tests."""

from decimal import Decimal

import pytest

from core.models.canonical import (
    Account,
    ClientPaymentLine,
    ExpenseLine,
    LoanLine,
    MatchConfidence,
    MatchMethod,
    OCRResult,
    PaymentGroup,
)
from core.money import sum_amounts


CASH_FUND_ID = "acc-cash"
BANK_ID = "acc-bank"
OFFICE_ID = "acc-office"


def make_line(**overrides) -> ClientPaymentLine:
    data = dict(
        client_id="C-001",
        client_name="María López",
        abono_esperado=Decimal("500"),
        abono_real=Decimal("500"),
        paid=True,
        payment_method="CASH",
        comission=Decimal("0"),
        resolved_loan_id="loan-1",
        resolved_borrower_id="borrower-1",
        match_confidence=MatchConfidence.ALTA,
        match_method=MatchMethod.CLIENT_CODE,
    )
    data.update(overrides)
    return ClientPaymentLine(**data)


def make_unmatched_line(**overrides) -> ClientPaymentLine:
    data = dict(
        client_name="Cliente Desconocido",
        resolved_loan_id=None,
        resolved_borrower_id=None,
        match_confidence=MatchConfidence.UNMATCHED,
        match_method=MatchMethod.UNMATCHED,
    )
    data.update(overrides)
    return make_line(**data)


def make_group(lines=None, **overrides) -> PaymentGroup:
    """Payment group whose cash total defaults to the sum of paid lines."""
    if lines is None:
        lines = [
            make_line(),
            make_line(client_id="C-002", client_name="José Pérez", abono_esperado="300",
                      abono_real="300", resolved_loan_id="loan-2", resolved_borrower_id="borrower-2"),
        ]
    paid = sum_amounts(line.paid_amount for line in lines if line.paid)
    data = dict(
        locality_name="Centro",
        leader_name="Juana Ruiz",
        resolved_leader_id="lead-1",
        resolved_leader_confidence=MatchConfidence.ALTA,
        cobranza_total=paid,
        cash_total=paid,
        bank_total=Decimal("0"),
        falco_amount=Decimal("0"),
        client_payments=tuple(lines),
    )
    data.update(overrides)
    return PaymentGroup(**data)


def make_loan(**overrides) -> LoanLine:
    data = dict(
        numero=1,
        client_name="Pedro Gómez",
        credit_amount=Decimal("3000"),
        delivered_amount=Decimal("3000"),
        term_weeks=14,
        resolved_borrower_id="borrower-9",
        resolved_loantype_id="loantype-14",
        match_confidence=MatchConfidence.ALTA,
        locality_name="Centro",
    )
    data.update(overrides)
    return LoanLine(**data)


def make_expense(**overrides) -> ExpenseLine:
    data = dict(
        expense_type="GASOLINE",
        establishment="Pemex",
        amount=Decimal("250"),
        notes="Ruta norte",
        resolved_source_type="GASOLINE",
        resolved_account_id=CASH_FUND_ID,
    )
    data.update(overrides)
    return ExpenseLine(**data)


def make_result(payments=(), loans=(), expenses=(), **overrides) -> OCRResult:
    data = dict(
        pages_processed=3,
        overall_confidence=MatchConfidence.ALTA,
        payments=tuple(payments),
        loans=tuple(loans),
        expenses=tuple(expenses),
    )
    data.update(overrides)
    return OCRResult(**data)


def make_accounts(cash_balance="1000", bank_balance="5000"):
    return [
        Account(id=CASH_FUND_ID, name="Caja Juana", type="EMPLOYEE_CASH_FUND", account_balance=cash_balance),
        Account(id=BANK_ID, name="Banco", type="BANK", account_balance=bank_balance),
        Account(id=OFFICE_ID, name="Oficina", type="OFFICE_CASH_FUND", amount="200"),
    ]


@pytest.fixture
def accounts():
    return make_accounts()


@pytest.fixture
def clean_result():
    """One locality, two matched cash payments of 500 and 300."""
    return make_result(payments=[make_group()])
