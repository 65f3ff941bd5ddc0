"""Account impact engine.

Computes, for every account in the snapshot, the movements the effective
dataset implies and the projected balance:

1. Collections: cash total credited to the employee cash fund, bank total to
   the bank account, commissions and FALCO debited from the cash fund.
2. Disbursements: delivered amounts debited from the designated source
   account, one line per locality.
3. Expenses: debited from each expense's resolved account.

Sign convention: credits are positive, debits negative.
"""

from collections import OrderedDict
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from core.models.canonical import (
    Account,
    AccountType,
    ClientPaymentLine,
    ExpenseLine,
    LoanLine,
    PaymentGroup,
    find_account_by_type,
)
from core.models.ledger import AccountImpact, DetailGroup, DetailLine
from core.money import ZERO, sum_amounts
from reconciliation.overlay import EffectiveDataset


NO_LOCALITY = "Sin localidad"
EXPENSES_GROUP = "Gastos"

LABEL_CASH_COLLECTION = "Cobranza efectivo"
LABEL_BANK_COLLECTION = "Cobranza banco"
LABEL_COMMISSIONS = "Comisiones"
LABEL_FALCO = "FALCO"


# =============================================================================
# Eligibility
# =============================================================================

def matched_paying_lines(group: PaymentGroup) -> List[ClientPaymentLine]:
    """Paid lines resolved to a loan."""
    return [cp for cp in group.client_payments if cp.paid and cp.is_matched]


def is_group_postable(group: PaymentGroup) -> bool:
    """A group's money can be posted only with a leader and a matched paying line."""
    return bool(group.resolved_leader_id) and len(matched_paying_lines(group)) > 0


def group_commissions(group: PaymentGroup) -> Decimal:
    return sum_amounts(cp.comission for cp in matched_paying_lines(group))


def ready_loans(loans: Sequence[LoanLine]) -> List[LoanLine]:
    return [loan for loan in loans if loan.is_ready]


def postable_expenses(expenses: Sequence[ExpenseLine]) -> List[ExpenseLine]:
    return [e for e in expenses if e.resolved_account_id and e.amount > 0]


def group_loans_by_locality(
    loans: Sequence[LoanLine],
) -> Tuple["OrderedDict[str, List[LoanLine]]", List[LoanLine]]:
    """Split loans into per-locality lists and loans with no locality.

    Localities keep first-seen order.
    """
    by_locality: "OrderedDict[str, List[LoanLine]]" = OrderedDict()
    unassigned: List[LoanLine] = []
    for loan in loans:
        if loan.locality_name:
            by_locality.setdefault(loan.locality_name, []).append(loan)
        else:
            unassigned.append(loan)
    return by_locality, unassigned


# =============================================================================
# Impact Computation
# =============================================================================

class _Accumulator:
    """Per-account delta and ordered detail lines."""

    def __init__(self):
        self._entries: Dict[str, List[DetailLine]] = {}

    def post(self, account_id: str, label: str, amount: Decimal, group: str) -> None:
        self._entries.setdefault(account_id, []).append(
            DetailLine(label=label, amount=amount, group=group)
        )

    def details(self, account_id: str) -> List[DetailLine]:
        return list(self._entries.get(account_id, []))


def _post_collections(acc: _Accumulator, payments, cash_fund, bank) -> None:
    for group in payments:
        if not is_group_postable(group):
            continue
        locality = group.locality_name

        if cash_fund and group.cash_total > 0:
            acc.post(cash_fund.id, LABEL_CASH_COLLECTION, group.cash_total, locality)

        if bank and group.bank_total > 0:
            acc.post(bank.id, LABEL_BANK_COLLECTION, group.bank_total, locality)

        commissions = group_commissions(group)
        if cash_fund and commissions > 0:
            acc.post(cash_fund.id, LABEL_COMMISSIONS, -commissions, locality)

        if cash_fund and group.falco_amount > 0:
            acc.post(cash_fund.id, LABEL_FALCO, -group.falco_amount, locality)


def _post_disbursements(acc: _Accumulator, loans, source_account_id: Optional[str]) -> None:
    if not source_account_id or not loans:
        return
    by_locality, unassigned = group_loans_by_locality(ready_loans(loans))
    if unassigned:
        by_locality.setdefault(NO_LOCALITY, []).extend(unassigned)
    for locality, local_loans in by_locality.items():
        delivered = sum_amounts(loan.delivered_amount for loan in local_loans)
        if delivered > 0:
            acc.post(source_account_id, f"Créditos ({len(local_loans)})", -delivered, locality)


def _post_expenses(acc: _Accumulator, expenses) -> None:
    for expense in postable_expenses(expenses):
        acc.post(
            expense.resolved_account_id,
            expense.expense_type,
            -expense.amount,
            EXPENSES_GROUP,
        )


def compute_account_impacts(
    accounts: Sequence[Account],
    effective: EffectiveDataset,
    source_account_id: Optional[str] = None,
) -> List[AccountImpact]:
    """Compute the impact of the effective dataset on every account.

    Args:
        accounts: Account snapshot; output follows its order
        effective: Effective dataset (overlay already applied)
        source_account_id: Account loans are disbursed from, if designated

    Returns:
        One AccountImpact per account, including accounts with no movement
    """
    cash_fund = find_account_by_type(accounts, AccountType.EMPLOYEE_CASH_FUND)
    bank = find_account_by_type(accounts, AccountType.BANK)

    acc = _Accumulator()
    _post_collections(acc, effective.payments, cash_fund, bank)
    _post_disbursements(acc, effective.loans, source_account_id)
    _post_expenses(acc, effective.expenses)

    impacts = []
    for account in accounts:
        details = acc.details(account.id)
        delta = sum((d.amount for d in details), ZERO)
        current = account.current_balance
        impacts.append(AccountImpact(
            account_id=account.id,
            account_name=account.name,
            account_type=account.type,
            current_balance=current,
            details=details,
            delta=delta,
            projected_balance=current + delta,
        ))
    return impacts


def orphan_account_ids(accounts: Sequence[Account], effective: EffectiveDataset) -> List[str]:
    """Expense target accounts that are missing from the snapshot."""
    known = {a.id for a in accounts}
    seen = []
    for expense in postable_expenses(effective.expenses):
        if expense.resolved_account_id not in known and expense.resolved_account_id not in seen:
            seen.append(expense.resolved_account_id)
    return seen


def group_details(details: Sequence[DetailLine]) -> List[DetailGroup]:
    """Collapse consecutive same-group lines for display."""
    grouped: List[Tuple[str, List[DetailLine]]] = []
    for line in details:
        if grouped and grouped[-1][0] == line.group:
            grouped[-1][1].append(line)
        else:
            grouped.append((line.group, [line]))
    return [DetailGroup(name=name, items=items) for name, items in grouped]


def find_impact(impacts: Sequence[AccountImpact], account_type: AccountType) -> Optional[AccountImpact]:
    for impact in impacts:
        if impact.account_type == account_type.value:
            return impact
    return None
