"""Tests for the issue classifier and commit gate."""

from decimal import Decimal

import pytest

from core.models.canonical import CutSheetTotals, ExtractionMessage
from core.models.ledger import IssueSeverity
from reconciliation.cross_validation import cross_validate
from reconciliation.engine import CheckStatus, evaluate_gate
from reconciliation.impact import compute_account_impacts, orphan_account_ids
from reconciliation.overlay import EditOverlay, project_effective

from conftest import (
    CASH_FUND_ID,
    make_accounts,
    make_expense,
    make_group,
    make_line,
    make_loan,
    make_result,
    make_unmatched_line,
)


def run_gate(result, source_account_id=CASH_FUND_ID, overlay=None, accounts=None):
    """Evaluate the gate the way a review session does."""
    accounts = accounts if accounts is not None else make_accounts()
    effective = project_effective(result, overlay or EditOverlay())
    impacts = compute_account_impacts(accounts, effective, source_account_id)
    return evaluate_gate(
        effective,
        impacts,
        source_account_id,
        cross_validation=cross_validate(result.cross_validation, accounts, impacts),
        extraction_warnings=result.warnings,
        orphan_account_ids=orphan_account_ids(accounts, effective),
    ), impacts


def codes(issues):
    return [i.code for i in issues]


class TestScenarios:
    """End-to-end gate outcomes for typical batches."""

    def test_clean_batch(self, clean_result):
        gate, impacts = run_gate(clean_result)

        assert gate.blocking == []
        assert gate.warnings == []
        assert gate.can_confirm
        assert gate.status == CheckStatus.PASS
        assert impacts[0].projected_balance == Decimal("1800")

    def test_unmatched_payment_blocks(self):
        result = make_result(payments=[make_group([make_line(), make_unmatched_line(abono_real="300")])])

        gate, _ = run_gate(result)

        assert len(gate.blocking) == 1
        assert gate.blocking[0].message == "1 pago(s) sin match"
        assert gate.blocking[0].severity == IssueSeverity.BLOCKING
        assert not gate.can_confirm
        assert gate.status == CheckStatus.FAIL

    @pytest.mark.parametrize("delivered,warns", [("3800", False), ("3800.90", False), ("4200", True)])
    def test_renewal_delivered_amount(self, delivered, warns):
        loan = make_loan(
            credit_amount="5000",
            previous_loan_pending="1200",
            is_renewal=True,
            resolved_previous_loan_id="loan-old",
            delivered_amount=delivered,
        )
        result = make_result(payments=[make_group()], loans=[loan])

        gate, _ = run_gate(result)

        assert gate.can_confirm
        assert ("DELIVERED_AMOUNT_MISMATCH" in codes(gate.warnings)) is warns

    def test_falco_warns_but_does_not_block(self):
        result = make_result(payments=[make_group(falco_amount="150")])

        gate, impacts = run_gate(result)

        assert gate.blocking == []
        assert len([w for w in gate.warnings if "FALCO" in w.message]) == 1
        assert gate.status == CheckStatus.WARN
        assert impacts[0].delta == Decimal("800") - Decimal("150")


class TestBlockingIssues:

    def test_extraction_errors(self, clean_result):
        result = clean_result.model_copy(update={"errors": (ExtractionMessage(message="Página ilegible"),)})
        gate, _ = run_gate(result)
        assert [i.message for i in gate.blocking] == ["Hay errores de validación"]

    def test_unresolved_loans_counted(self):
        loans = [make_loan(resolved_loantype_id=None), make_loan(resolved_borrower_id=None), make_loan()]
        gate, _ = run_gate(make_result(payments=[make_group()], loans=loans))
        assert [i.message for i in gate.blocking] == ["2 crédito(s) sin resolver"]

    def test_new_client_loan_is_resolved(self):
        loan = make_loan(resolved_borrower_id=None, is_new_client=True)
        gate, _ = run_gate(make_result(payments=[make_group()], loans=[loan]))
        assert gate.can_confirm

    def test_loans_need_source_account(self):
        gate, _ = run_gate(make_result(payments=[make_group()], loans=[make_loan()]), source_account_id=None)
        assert codes(gate.blocking) == ["MISSING_SOURCE_ACCOUNT"]
        assert gate.blocking[0].message == "Falta cuenta origen para créditos"

    def test_source_account_not_needed_without_loans(self, clean_result):
        gate, _ = run_gate(clean_result, source_account_id=None)
        assert gate.can_confirm

    def test_loans_need_a_leader(self):
        gate, _ = run_gate(make_result(loans=[make_loan()]))
        assert codes(gate.blocking) == ["NO_LEADER_FOR_LOANS"]

    def test_localities_without_leader(self):
        groups = [make_group(resolved_leader_id=None), make_group(locality_name="Norte", resolved_leader_id=None)]
        gate, _ = run_gate(make_result(payments=groups))
        assert "2 localidad(es) sin líder" in [i.message for i in gate.blocking]

    def test_unassigned_expense(self, clean_result):
        result = clean_result.model_copy(update={"expenses": (make_expense(resolved_account_id=None),)})
        gate, _ = run_gate(result)
        assert [i.message for i in gate.blocking] == ["1 gasto(s) sin cuenta asignada"]

    def test_deleting_last_blocker_clears_gate(self):
        result = make_result(payments=[make_group([make_line(), make_unmatched_line(abono_real="300")])])

        gate, _ = run_gate(result)
        assert not gate.can_confirm

        gate, _ = run_gate(result, overlay=EditOverlay().delete_payment((0, 1)))
        assert gate.can_confirm


class TestWarnings:

    def test_negative_projected_balance(self):
        loan = make_loan(delivered_amount="5000")
        gate, _ = run_gate(make_result(payments=[make_group()], loans=[loan]))
        assert gate.can_confirm
        assert codes(gate.warnings) == ["NEGATIVE_PROJECTED_BALANCE"]
        assert "Caja Juana" in gate.warnings[0].message

    def test_amount_warning(self):
        group = make_group([make_line(amount_warning="Abono menor al esperado")])
        gate, _ = run_gate(make_result(payments=[group]))
        assert codes(gate.warnings) == ["AMOUNT_MISMATCH"]

    def test_loan_without_locality(self):
        result = make_result(payments=[make_group()], loans=[make_loan(locality_name=None, delivered_amount="500")])
        gate, _ = run_gate(result)
        assert gate.can_confirm
        assert codes(gate.warnings) == ["LOANS_WITHOUT_LOCALITY"]

    def test_group_totals_disagree_with_lines(self):
        gate, _ = run_gate(make_result(payments=[make_group(cash_total="700")]))
        assert codes(gate.warnings) == ["GROUP_TOTAL_MISMATCH"]

    def test_unattributed_cash(self):
        group = make_group([make_line(paid=False)], cash_total="400")
        gate, _ = run_gate(make_result(payments=[group]))
        assert "UNATTRIBUTED_CASH" in codes(gate.warnings)
        assert gate.can_confirm

    def test_cut_sheet_mismatch(self, clean_result):
        result = clean_result.model_copy(update={
            "cross_validation": CutSheetTotals(inicial_efectivo="900", final_efectivo="1800"),
        })
        gate, _ = run_gate(result)
        assert codes(gate.warnings) == ["CUT_SHEET_INITIAL_MISMATCH"]
        assert gate.can_confirm

    def test_orphan_expense_account(self, clean_result):
        result = clean_result.model_copy(update={"expenses": (make_expense(resolved_account_id="acc-gone"),)})
        gate, _ = run_gate(result)
        assert codes(gate.warnings) == ["UNKNOWN_EXPENSE_ACCOUNT"]

    def test_extraction_warnings_pass_through(self, clean_result):
        result = clean_result.model_copy(update={
            "warnings": (ExtractionMessage(code="LOW_CONFIDENCE", message="Página 3 borrosa"),),
        })
        gate, _ = run_gate(result)
        assert [(w.code, w.message) for w in gate.warnings] == [("LOW_CONFIDENCE", "Página 3 borrosa")]
