"""Cut sheet cross-validation.

Reconciles the engine's cash projection against the hand-filled cut sheet
(hoja de corte) and the physical cash count:

- Reported starting cash vs the cash fund's current balance
- Reported ending cash vs the cash fund's projected balance
- Expected cash from the cut sheet formula vs the physical count

    expected = collections - commissions - disbursements - expenses + extra

Everything here is advisory. The cut sheet itself can be the wrong input,
so a mismatch is a warning and never blocks a commit.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.models.canonical import Account, AccountType, CutSheetTotals, GroupValidation, find_account_by_type
from core.models.ledger import AccountImpact
from core.money import ZERO
from reconciliation.impact import find_impact


BALANCE_TOLERANCE = Decimal("1")
CASH_COUNT_TOLERANCE = Decimal("0.5")


class ComparisonStatus(str, Enum):
    MATCH = "MATCH"
    MISMATCH = "MISMATCH"
    NOT_AVAILABLE = "NOT_AVAILABLE"


class CashComparison(BaseModel):
    """One reported-vs-computed comparison.

    difference is reported minus computed.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    reported: Optional[Decimal] = None
    computed: Optional[Decimal] = None
    difference: Optional[Decimal] = None
    status: ComparisonStatus = ComparisonStatus.NOT_AVAILABLE

    @property
    def is_mismatch(self) -> bool:
        return self.status == ComparisonStatus.MISMATCH


class CrossValidationResult(BaseModel):
    """All cut sheet comparisons for one batch."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    initial_cash: CashComparison
    final_cash: CashComparison
    cash_count: CashComparison
    expected_cash: Optional[Decimal] = None
    reported_expected_cash: Optional[Decimal] = None
    group_mismatches: List[GroupValidation] = Field(default_factory=list)

    @property
    def comparisons(self) -> List[CashComparison]:
        return [self.initial_cash, self.final_cash, self.cash_count]


def _compare_balance(name: str, reported: Optional[Decimal], computed: Optional[Decimal]) -> CashComparison:
    """Match iff the difference is strictly below one unit."""
    if reported is None or computed is None:
        return CashComparison(name=name, reported=reported, computed=computed)
    difference = reported - computed
    status = ComparisonStatus.MATCH if abs(difference) < BALANCE_TOLERANCE else ComparisonStatus.MISMATCH
    return CashComparison(
        name=name,
        reported=reported,
        computed=computed,
        difference=difference,
        status=status,
    )


def expected_cash(cut_sheet: CutSheetTotals) -> Optional[Decimal]:
    """Expected cash from the cut sheet formula.

    Falls back to the extracted expected total when the collections total is
    missing; None when neither is available.
    """
    if cut_sheet.registro_diario_total is None:
        return cut_sheet.expected_cash_total
    return (
        cut_sheet.registro_diario_total
        - (cut_sheet.total_cuota or ZERO)
        - (cut_sheet.total_colocado or ZERO)
        - (cut_sheet.total_gastos or ZERO)
        + (cut_sheet.extracobranza or ZERO)
    )


def _compare_cash_count(expected: Optional[Decimal], counted: Optional[Decimal]) -> CashComparison:
    """Surface the signed difference when it exceeds half a unit."""
    if expected is None or counted is None:
        return CashComparison(name="cash_count", reported=counted, computed=expected)
    difference = counted - expected
    status = ComparisonStatus.MISMATCH if abs(difference) > CASH_COUNT_TOLERANCE else ComparisonStatus.MATCH
    return CashComparison(
        name="cash_count",
        reported=counted,
        computed=expected,
        difference=difference,
        status=status,
    )


def cross_validate(
    cut_sheet: Optional[CutSheetTotals],
    accounts: Sequence[Account],
    impacts: Sequence[AccountImpact],
) -> CrossValidationResult:
    """Run every cut sheet comparison.

    Args:
        cut_sheet: Extracted cut sheet totals (None when the page was missing)
        accounts: Account snapshot
        impacts: Account impacts for the effective dataset

    Returns:
        CrossValidationResult; missing inputs yield NOT_AVAILABLE comparisons
    """
    cut_sheet = cut_sheet or CutSheetTotals()

    cash_fund = find_account_by_type(accounts, AccountType.EMPLOYEE_CASH_FUND)
    cash_fund_impact = find_impact(impacts, AccountType.EMPLOYEE_CASH_FUND)

    initial = _compare_balance(
        "initial_cash",
        cut_sheet.inicial_efectivo,
        cash_fund.current_balance if cash_fund else None,
    )
    final = _compare_balance(
        "final_cash",
        cut_sheet.final_efectivo,
        cash_fund_impact.projected_balance if cash_fund_impact else None,
    )

    expected = expected_cash(cut_sheet)
    count = _compare_cash_count(expected, cut_sheet.cash_count_total)

    group_mismatches = [
        g for g in cut_sheet.group_validations
        if not g.cobranza_match
        and g.cobranza_difference is not None
        and abs(g.cobranza_difference) > CASH_COUNT_TOLERANCE
    ]

    return CrossValidationResult(
        initial_cash=initial,
        final_cash=final,
        cash_count=count,
        expected_cash=expected,
        reported_expected_cash=cut_sheet.expected_cash_total,
        group_mismatches=group_mismatches,
    )
