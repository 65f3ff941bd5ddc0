"""Core data models.

Extracted report models (input) and derived ledger models (output).
"""

from core.models.canonical import (
    # Base
    CanonicalBase,
    AmountValue,
    OptionalAmountValue,
    IntValue,

    # Enums
    MatchConfidence,
    MatchMethod,
    PaymentMethod,
    AccountType,

    # Extraction
    ExtractionMessage,
    ClientPaymentLine,
    PaymentGroup,
    LoanLine,
    ExpenseLine,
    GroupValidation,
    CutSheetTotals,
    OCRResult,
    Account,
    find_account_by_type,
)

from core.models.ledger import (
    DetailLine,
    DetailGroup,
    AccountImpact,
    IssueSeverity,
    Issue,
    ClientPaymentInput,
    PaymentBatchInput,
    LoanBatchInput,
    ExpenseBatchInput,
    ConfirmBatchInput,
    CommitResult,
)

__all__ = [
    # Base
    "CanonicalBase",
    "AmountValue",
    "OptionalAmountValue",
    "IntValue",

    # Enums
    "MatchConfidence",
    "MatchMethod",
    "PaymentMethod",
    "AccountType",

    # Extraction
    "ExtractionMessage",
    "ClientPaymentLine",
    "PaymentGroup",
    "LoanLine",
    "ExpenseLine",
    "GroupValidation",
    "CutSheetTotals",
    "OCRResult",
    "Account",
    "find_account_by_type",

    # Ledger
    "DetailLine",
    "DetailGroup",
    "AccountImpact",
    "IssueSeverity",
    "Issue",
    "ClientPaymentInput",
    "PaymentBatchInput",
    "LoanBatchInput",
    "ExpenseBatchInput",
    "ConfirmBatchInput",
    "CommitResult",
]
