"""Issue classifier and commit gate for a reviewed batch.

Exposes high-level function:
- evaluate_gate(...) -> GateResult

Blocking issues disable the commit; warnings are surfaced to the reviewer
but never disable it. Each check returns a list of issues so the caller
gets itemized, counted messages that can be fixed one at a time.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.models.canonical import ExpenseLine, ExtractionMessage, LoanLine, PaymentGroup
from core.models.ledger import AccountImpact, Issue, IssueSeverity
from core.money import format_currency, sum_amounts
from reconciliation.cross_validation import CrossValidationResult, CASH_COUNT_TOLERANCE
from reconciliation.impact import is_group_postable
from reconciliation.overlay import EffectiveDataset


# =============================================================================
# Configuration & Data Structures
# =============================================================================

NEGATIVE_BALANCE_TOLERANCE = Decimal("-0.01")
DELIVERED_AMOUNT_TOLERANCE = Decimal("1")
GROUP_TOTAL_TOLERANCE = CASH_COUNT_TOLERANCE


class CheckStatus(str, Enum):
    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"


class GateResult(BaseModel):
    """Outcome of classifying every issue in a batch."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    blocking: List[Issue] = Field(default_factory=list)
    warnings: List[Issue] = Field(default_factory=list)

    @property
    def can_confirm(self) -> bool:
        return len(self.blocking) == 0

    @property
    def status(self) -> CheckStatus:
        if self.blocking:
            return CheckStatus.FAIL
        if self.warnings:
            return CheckStatus.WARN
        return CheckStatus.PASS


def _blocking(code: str, message: str, **evidence) -> Issue:
    return Issue(severity=IssueSeverity.BLOCKING, code=code, message=message, evidence=evidence)


def _warning(code: str, message: str, **evidence) -> Issue:
    return Issue(severity=IssueSeverity.WARNING, code=code, message=message, evidence=evidence)


# =============================================================================
# Blocking Checks
# =============================================================================

def check_extraction_errors(has_errors: bool) -> List[Issue]:
    if has_errors:
        return [_blocking("EXTRACTION_ERRORS", "Hay errores de validación")]
    return []


def check_unmatched_payments(payments: Sequence[PaymentGroup]) -> List[Issue]:
    """Paid lines with no resolved loan after the overlay."""
    unmatched = [
        {"locality": g.locality_name, "client": cp.client_name, "client_id": cp.client_id}
        for g in payments
        for cp in g.client_payments
        if cp.paid and not cp.is_matched
    ]
    if unmatched:
        return [_blocking(
            "UNMATCHED_PAYMENTS",
            f"{len(unmatched)} pago(s) sin match",
            lines=unmatched,
        )]
    return []


def check_unresolved_loans(loans: Sequence[LoanLine]) -> List[Issue]:
    not_ready = [loan for loan in loans if not loan.is_ready]
    if not_ready:
        return [_blocking(
            "UNRESOLVED_LOANS",
            f"{len(not_ready)} crédito(s) sin resolver",
            loans=[{"numero": loan.numero, "client": loan.client_name} for loan in not_ready],
        )]
    return []


def check_source_account(loans: Sequence[LoanLine], source_account_id: Optional[str]) -> List[Issue]:
    if loans and not source_account_id:
        return [_blocking("MISSING_SOURCE_ACCOUNT", "Falta cuenta origen para créditos")]
    return []


def check_loan_leader(loans: Sequence[LoanLine], payments: Sequence[PaymentGroup]) -> List[Issue]:
    """Loans attach to a leader, so at least one group needs a resolved one."""
    if loans and not any(g.resolved_leader_id for g in payments):
        return [_blocking("NO_LEADER_FOR_LOANS", "No hay líder identificado para asignar créditos")]
    return []


def check_missing_leaders(payments: Sequence[PaymentGroup]) -> List[Issue]:
    missing = [g.locality_name for g in payments if not g.resolved_leader_id]
    if missing:
        return [_blocking(
            "MISSING_LEADERS",
            f"{len(missing)} localidad(es) sin líder",
            localities=missing,
        )]
    return []


def check_unassigned_expenses(expenses: Sequence[ExpenseLine]) -> List[Issue]:
    unassigned = [e for e in expenses if not e.resolved_account_id and e.amount > 0]
    if unassigned:
        return [_blocking(
            "UNASSIGNED_EXPENSES",
            f"{len(unassigned)} gasto(s) sin cuenta asignada",
            expenses=[e.expense_type for e in unassigned],
        )]
    return []


# =============================================================================
# Warning Checks
# =============================================================================

def check_negative_balances(impacts: Sequence[AccountImpact]) -> List[Issue]:
    return [
        _warning(
            "NEGATIVE_PROJECTED_BALANCE",
            f"Saldo negativo proyectado: {i.account_name} {format_currency(i.projected_balance)}",
            account_id=i.account_id,
            projected_balance=str(i.projected_balance),
        )
        for i in impacts
        if i.projected_balance < NEGATIVE_BALANCE_TOLERANCE
    ]


def check_amount_warnings(payments: Sequence[PaymentGroup]) -> List[Issue]:
    flagged = [
        {"locality": g.locality_name, "client": cp.client_name, "warning": cp.amount_warning}
        for g in payments
        for cp in g.client_payments
        if cp.amount_warning
    ]
    if flagged:
        return [_warning(
            "AMOUNT_MISMATCH",
            f"{len(flagged)} abono(s) con diferencia contra lo esperado",
            lines=flagged,
        )]
    return []


def check_falco(payments: Sequence[PaymentGroup]) -> List[Issue]:
    return [
        _warning(
            "FALCO_REPORTED",
            f"FALCO en {g.locality_name}: {format_currency(g.falco_amount)}",
            locality=g.locality_name,
            falco_amount=str(g.falco_amount),
        )
        for g in payments
        if g.falco_amount > 0
    ]


def check_cross_validation(xv: Optional[CrossValidationResult]) -> List[Issue]:
    if xv is None:
        return []
    issues = []
    if xv.initial_cash.is_mismatch:
        issues.append(_warning(
            "CUT_SHEET_INITIAL_MISMATCH",
            f"Hoja de corte inicial no coincide con caja actual (dif: {format_currency(xv.initial_cash.difference)})",
            reported=str(xv.initial_cash.reported),
            computed=str(xv.initial_cash.computed),
        ))
    if xv.final_cash.is_mismatch:
        issues.append(_warning(
            "CUT_SHEET_FINAL_MISMATCH",
            f"Hoja de corte final no coincide con saldo proyectado (dif: {format_currency(xv.final_cash.difference)})",
            reported=str(xv.final_cash.reported),
            computed=str(xv.final_cash.computed),
        ))
    if xv.cash_count.is_mismatch:
        issues.append(_warning(
            "CASH_COUNT_MISMATCH",
            f"Conteo físico difiere del efectivo esperado (dif: {format_currency(xv.cash_count.difference)})",
            counted=str(xv.cash_count.reported),
            expected=str(xv.cash_count.computed),
        ))
    for g in xv.group_mismatches:
        issues.append(_warning(
            "GROUP_COLLECTION_MISMATCH",
            f"Cobranza de {g.locality_name} no coincide con el listado (dif: {format_currency(g.cobranza_difference)})",
            locality=g.locality_name,
        ))
    return issues


def check_delivered_amounts(loans: Sequence[LoanLine]) -> List[Issue]:
    """Delivered cash vs credit minus prior pending balance."""
    issues = []
    for loan in loans:
        expected = loan.expected_delivered
        if expected is None:
            continue
        if abs(loan.delivered_amount - expected) > DELIVERED_AMOUNT_TOLERANCE:
            issues.append(_warning(
                "DELIVERED_AMOUNT_MISMATCH",
                f"Crédito #{loan.numero} ({loan.client_name}): entregado "
                f"{format_currency(loan.delivered_amount)} vs esperado {format_currency(expected)}",
                numero=loan.numero,
                delivered=str(loan.delivered_amount),
                expected=str(expected),
            ))
    return issues


def check_loans_without_locality(loans: Sequence[LoanLine]) -> List[Issue]:
    unassigned = [loan for loan in loans if not loan.locality_name]
    if unassigned:
        return [_warning(
            "LOANS_WITHOUT_LOCALITY",
            f"{len(unassigned)} crédito(s) sin localidad",
            loans=[loan.numero for loan in unassigned],
        )]
    return []


def check_group_totals(payments: Sequence[PaymentGroup]) -> List[Issue]:
    """Cash plus bank should approximate the paid lines."""
    issues = []
    for g in payments:
        paid = sum_amounts(cp.paid_amount for cp in g.client_payments if cp.paid)
        reported = g.cash_total + g.bank_total
        if abs(reported - paid) > GROUP_TOTAL_TOLERANCE:
            issues.append(_warning(
                "GROUP_TOTAL_MISMATCH",
                f"{g.locality_name}: efectivo + banco {format_currency(reported)} vs abonos {format_currency(paid)}",
                locality=g.locality_name,
                reported=str(reported),
                paid=str(paid),
            ))
    return issues


def check_unattributed_cash(payments: Sequence[PaymentGroup]) -> List[Issue]:
    """Groups left out of the collections impact while carrying money."""
    issues = []
    for g in payments:
        if is_group_postable(g):
            continue
        amount = g.cash_total + g.bank_total
        if amount > 0:
            issues.append(_warning(
                "UNATTRIBUTED_CASH",
                f"{g.locality_name}: {format_currency(amount)} no se registrará en ninguna cuenta",
                locality=g.locality_name,
                amount=str(amount),
            ))
    return issues


def check_orphan_accounts(orphan_account_ids: Sequence[str]) -> List[Issue]:
    return [
        _warning(
            "UNKNOWN_EXPENSE_ACCOUNT",
            f"Gasto asignado a una cuenta fuera del listado: {account_id}",
            account_id=account_id,
        )
        for account_id in orphan_account_ids
    ]


def check_extraction_warnings(warnings: Sequence[ExtractionMessage]) -> List[Issue]:
    return [
        _warning(w.code or "EXTRACTION_WARNING", w.message)
        for w in warnings
        if w.message
    ]


# =============================================================================
# Gate
# =============================================================================

def evaluate_gate(
    effective: EffectiveDataset,
    impacts: Sequence[AccountImpact],
    source_account_id: Optional[str],
    cross_validation: Optional[CrossValidationResult] = None,
    extraction_warnings: Sequence[ExtractionMessage] = (),
    orphan_account_ids: Sequence[str] = (),
) -> GateResult:
    """Run every check and partition the issues.

    Args:
        effective: Effective dataset (overlay applied)
        impacts: Account impacts for the effective dataset
        source_account_id: Account designated for disbursements
        cross_validation: Cut sheet comparisons, if computed
        extraction_warnings: Warnings reported by the OCR step
        orphan_account_ids: Expense accounts missing from the snapshot

    Returns:
        GateResult; can_confirm is True iff there are no blocking issues
    """
    payments = effective.payments
    loans = effective.loans

    blocking: List[Issue] = []
    blocking.extend(check_extraction_errors(effective.has_errors))
    blocking.extend(check_unmatched_payments(payments))
    blocking.extend(check_unresolved_loans(loans))
    blocking.extend(check_source_account(loans, source_account_id))
    blocking.extend(check_loan_leader(loans, payments))
    blocking.extend(check_missing_leaders(payments))
    blocking.extend(check_unassigned_expenses(effective.expenses))

    warnings: List[Issue] = []
    warnings.extend(check_negative_balances(impacts))
    warnings.extend(check_amount_warnings(payments))
    warnings.extend(check_falco(payments))
    warnings.extend(check_cross_validation(cross_validation))
    warnings.extend(check_delivered_amounts(loans))
    warnings.extend(check_loans_without_locality(loans))
    warnings.extend(check_group_totals(payments))
    warnings.extend(check_unattributed_cash(payments))
    warnings.extend(check_orphan_accounts(orphan_account_ids))
    warnings.extend(check_extraction_warnings(extraction_warnings))

    return GateResult(blocking=blocking, warnings=warnings)
