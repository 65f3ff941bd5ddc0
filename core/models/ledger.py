"""Derived ledger models: account impacts, issues and the commit payload."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.models.canonical import IntValue


class LedgerBase(BaseModel):
    """Base model for derived structures (camelCase on the wire)."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# =============================================================================
# Account Impact
# =============================================================================

class DetailLine(LedgerBase):
    """One labeled monetary movement on an account."""
    label: str
    amount: Decimal
    group: str


class DetailGroup(LedgerBase):
    """Consecutive detail lines sharing a group, for display."""
    name: str
    items: List[DetailLine] = Field(default_factory=list)


class AccountImpact(LedgerBase):
    """Net effect of the batch on one account."""
    account_id: str
    account_name: str = ""
    account_type: str = ""
    current_balance: Decimal = Decimal("0")
    details: List[DetailLine] = Field(default_factory=list)
    delta: Decimal = Decimal("0")
    projected_balance: Decimal = Decimal("0")


# =============================================================================
# Issues
# =============================================================================

class IssueSeverity(str, Enum):
    BLOCKING = "blocking"
    WARNING = "warning"


class Issue(LedgerBase):
    """A problem found while reviewing a batch."""
    severity: IssueSeverity
    code: str
    message: str
    evidence: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_blocking(self) -> bool:
        return self.severity == IssueSeverity.BLOCKING


# =============================================================================
# Commit Payload (ConfirmBatchInput)
# =============================================================================

class ClientPaymentInput(LedgerBase):
    loan_id: str
    amount: str
    comission: str
    payment_method: str


class PaymentBatchInput(LedgerBase):
    lead_id: str
    expected_amount: str
    paid_amount: str
    cash_paid_amount: str
    bank_paid_amount: str
    falco_amount: Optional[str] = None
    client_payments: List[ClientPaymentInput] = Field(default_factory=list)


class LoanBatchInput(LedgerBase):
    requested_amount: str
    amount_gived: str
    loantype_id: str
    borrower_id: Optional[str] = None
    new_borrower_name: Optional[str] = None
    previous_loan_id: Optional[str] = None
    lead_id: str


class ExpenseBatchInput(LedgerBase):
    amount: str
    expense_source: Optional[str] = None
    source_account_id: str
    description: Optional[str] = None


class ConfirmBatchInput(LedgerBase):
    """Normalized command sent to the persistence mutation."""
    route_id: str
    business_date: str
    source_account_id: Optional[str] = None
    payments: List[PaymentBatchInput] = Field(default_factory=list)
    loans: List[LoanBatchInput] = Field(default_factory=list)
    expenses: List[ExpenseBatchInput] = Field(default_factory=list)

    def to_variables(self) -> Dict[str, Any]:
        """GraphQL variables for the ConfirmOCRBatch mutation."""
        return {"input": self.model_dump(by_alias=True, exclude_none=True, mode="json")}


class CommitResult(LedgerBase):
    """Counts returned by the persistence mutation. A null count reads as 0."""
    payments_created: IntValue = 0
    loans_created: IntValue = 0
    expenses_created: IntValue = 0
