"""Canonical models for an OCR-extracted daily route report.

These models mirror what the external OCR step returns for one scanned
report: payment groups per locality, disbursed loans, expenses and the cut
sheet totals. Field names are snake_case in Python and camelCase on the wire.

Input models are frozen and hold tuples, so an `OCRResult` cannot be changed
after it is parsed. Operator edits live in the edit overlay instead.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated

from core.money import to_amount, to_optional_amount


# =============================================================================
# Value Parsers (OCR output is noisy; parsing never fails on amounts)
# =============================================================================

def _parse_int(value):
    """Parse integer from various formats, defaulting to zero."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(to_amount(value))
    except (ValueError, OverflowError):
        return 0


def _parse_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "si", "sí", "x")
    return bool(value)


def _parse_optional_str(value):
    if value is None:
        return None
    s = str(value).strip()
    return s or None


AmountValue = Annotated[Decimal, BeforeValidator(to_amount)]
OptionalAmountValue = Annotated[Optional[Decimal], BeforeValidator(to_optional_amount)]
IntValue = Annotated[int, BeforeValidator(_parse_int)]
BoolValue = Annotated[bool, BeforeValidator(_parse_bool)]
OptionalId = Annotated[Optional[str], BeforeValidator(_parse_optional_str)]


# =============================================================================
# Enums
# =============================================================================

_CONFIDENCE_RANK = {"unmatched": 0, "baja": 1, "media": 2, "alta": 3}


class MatchConfidence(str, Enum):
    """Confidence tier of an entity match.

    Totally ordered: ALTA > MEDIA > BAJA > UNMATCHED.
    """
    ALTA = "alta"
    MEDIA = "media"
    BAJA = "baja"
    UNMATCHED = "unmatched"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.UNMATCHED

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self.value]

    def __lt__(self, other):
        if not isinstance(other, MatchConfidence):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, MatchConfidence):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, MatchConfidence):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, MatchConfidence):
            return NotImplemented
        return self.rank >= other.rank


class MatchMethod(str, Enum):
    """How a line was matched to the database."""
    CLIENT_CODE = "clientCode"
    NAME = "name"
    MANUAL = "manual"
    UNMATCHED = "unmatched"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return cls.UNMATCHED


class PaymentMethod(str, Enum):
    """How a client paid. Anything that is not a transfer is cash."""
    CASH = "CASH"
    MONEY_TRANSFER = "MONEY_TRANSFER"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and value.strip().upper() == "MONEY_TRANSFER":
            return cls.MONEY_TRANSFER
        return cls.CASH


class AccountType(str, Enum):
    """Account types the engine routes money to."""
    EMPLOYEE_CASH_FUND = "EMPLOYEE_CASH_FUND"
    BANK = "BANK"


# =============================================================================
# Base Model
# =============================================================================

class CanonicalBase(BaseModel):
    """Base model for all extracted structures."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ExtractionMessage(CanonicalBase):
    """A warning or error reported by the OCR step."""
    code: Optional[str] = None
    message: str = ""
    field: Optional[str] = None
    page_index: Optional[int] = None


# =============================================================================
# Payments
# =============================================================================

class ClientPaymentLine(CanonicalBase):
    """One expected client payment on a locality's collection list."""
    client_id: Optional[str] = None
    client_name: str = ""
    abono_esperado: AmountValue = Decimal("0")
    abono_real: OptionalAmountValue = None
    paid: BoolValue = False
    payment_method: PaymentMethod = PaymentMethod.CASH
    comission: AmountValue = Decimal("0")
    notes: Optional[str] = None
    resolved_loan_id: OptionalId = None
    resolved_borrower_id: OptionalId = None
    match_confidence: MatchConfidence = MatchConfidence.UNMATCHED
    match_method: MatchMethod = MatchMethod.UNMATCHED
    db_client_code: Optional[str] = None
    db_client_name: Optional[str] = None
    db_pending_amount: OptionalAmountValue = None
    db_expected_payment: OptionalAmountValue = None
    amount_warning: Optional[str] = None

    @property
    def is_matched(self) -> bool:
        """Resolved to a loan by any method."""
        return self.match_method != MatchMethod.UNMATCHED and self.resolved_loan_id is not None

    @property
    def paid_amount(self) -> Decimal:
        """Actual amount when reported, otherwise the expected amount."""
        return self.abono_real if self.abono_real is not None else self.abono_esperado


class PaymentGroup(CanonicalBase):
    """Collections for one locality on the reporting day."""
    locality_name: str = ""
    leader_name: str = ""
    resolved_leader_id: OptionalId = None
    resolved_leader_confidence: MatchConfidence = MatchConfidence.UNMATCHED
    fecha: Optional[str] = None
    cobranza_total: AmountValue = Decimal("0")
    comision_total: AmountValue = Decimal("0")
    cash_total: AmountValue = Decimal("0")
    bank_total: AmountValue = Decimal("0")
    falco_amount: AmountValue = Decimal("0")
    client_payments: Tuple[ClientPaymentLine, ...] = ()
    warnings: Tuple[ExtractionMessage, ...] = ()


# =============================================================================
# Loans
# =============================================================================

class LoanLine(CanonicalBase):
    """One disbursement listed on the report."""
    numero: IntValue = 0
    client_name: str = ""
    credit_amount: AmountValue = Decimal("0")
    delivered_amount: AmountValue = Decimal("0")
    term_weeks: IntValue = 0
    credit_type: Optional[str] = None
    resolved_borrower_id: OptionalId = None
    resolved_previous_loan_id: OptionalId = None
    resolved_loantype_id: OptionalId = None
    match_confidence: MatchConfidence = MatchConfidence.UNMATCHED
    is_new_client: BoolValue = False
    is_renewal: BoolValue = False
    previous_loan_pending: OptionalAmountValue = None
    expected_delivered_amount: OptionalAmountValue = None
    locality_name: OptionalId = None
    warnings: Tuple[ExtractionMessage, ...] = ()

    @property
    def expected_delivered(self) -> Optional[Decimal]:
        """Expected cash handed over.

        Uses the extracted value when present; for renewals it is derived as
        credit amount minus the prior loan's pending balance.
        """
        if self.expected_delivered_amount is not None:
            return self.expected_delivered_amount
        if self.is_renewal and self.previous_loan_pending is not None:
            return self.credit_amount - self.previous_loan_pending
        return None

    @property
    def is_ready(self) -> bool:
        """Has a loan product and either a borrower or a new-client flag."""
        return bool(self.resolved_loantype_id) and (
            bool(self.resolved_borrower_id) or self.is_new_client
        )


# =============================================================================
# Expenses
# =============================================================================

class ExpenseLine(CanonicalBase):
    """One expense incurred on the route."""
    expense_type: str = ""
    establishment: Optional[str] = None
    amount: AmountValue = Decimal("0")
    date: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    resolved_source_type: Optional[str] = None
    resolved_account_id: OptionalId = None
    confidence: Optional[str] = None


# =============================================================================
# Cut Sheet
# =============================================================================

class GroupValidation(CanonicalBase):
    """Per-locality collection check computed by the OCR step."""
    group_number: IntValue = 0
    locality_name: str = ""
    rd_cobranza: AmountValue = Decimal("0")
    lc_cobranza_total: OptionalAmountValue = None
    cobranza_match: BoolValue = True
    cobranza_difference: OptionalAmountValue = None


class CutSheetTotals(CanonicalBase):
    """Totals from the hand-filled cut sheet (hoja de corte)."""
    is_valid: BoolValue = True
    registro_diario_total: OptionalAmountValue = None
    listados_total: OptionalAmountValue = None
    difference: OptionalAmountValue = None
    inicial_efectivo: OptionalAmountValue = None
    final_efectivo: OptionalAmountValue = None
    ficha_deposito: OptionalAmountValue = None
    total_colocado: OptionalAmountValue = None
    total_cuota: OptionalAmountValue = None
    total_gastos: OptionalAmountValue = None
    extracobranza: OptionalAmountValue = None
    expected_cash_total: OptionalAmountValue = None
    cash_count_total: OptionalAmountValue = None
    cash_difference: OptionalAmountValue = None
    group_validations: Tuple[GroupValidation, ...] = ()


# =============================================================================
# Extraction Result
# =============================================================================

class OCRResult(CanonicalBase):
    """Everything the OCR step extracted from one uploaded report."""
    pages_processed: IntValue = 0
    overall_confidence: MatchConfidence = MatchConfidence.UNMATCHED
    payments: Tuple[PaymentGroup, ...] = ()
    loans: Tuple[LoanLine, ...] = ()
    expenses: Tuple[ExpenseLine, ...] = ()
    cross_validation: Optional[CutSheetTotals] = None
    warnings: Tuple[ExtractionMessage, ...] = ()
    errors: Tuple[ExtractionMessage, ...] = ()

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0


class Account(CanonicalBase):
    """Account snapshot read at review time."""
    id: str
    name: str = ""
    type: str = ""
    account_balance: OptionalAmountValue = None
    amount: OptionalAmountValue = None

    @property
    def current_balance(self) -> Decimal:
        """Authoritative balance, falling back to `amount`."""
        if self.account_balance is not None:
            return self.account_balance
        if self.amount is not None:
            return self.amount
        return Decimal("0")


def find_account_by_type(accounts, account_type: AccountType) -> Optional[Account]:
    """First account of the given type in snapshot order."""
    for account in accounts:
        if account.type == account_type.value:
            return account
    return None
