"""Edit overlay for a batch under review.

Operators delete lines or reassign a payment's client without touching the
extraction. The overlay records those edits and `project_effective` applies
them to produce the effective dataset every other computation reads.

Payment lines are addressed by (payment group index, client payment index)
into the original extraction; loans by their original index.
"""

from dataclasses import dataclass, replace
from typing import FrozenSet, List, Optional, Tuple

from core.models.canonical import ExpenseLine, LoanLine, OCRResult, PaymentGroup
from entity_resolver.models import ManualMatch
from entity_resolver.resolver import apply_manual_match


PaymentKey = Tuple[int, int]


@dataclass(frozen=True)
class EditOverlay:
    """Operator edits on top of one extraction.

    Every operation returns a new overlay; an overlay is never changed in
    place. Overrides are (key, match) pairs sorted by key, so two overlays
    with the same edits compare and hash equal.
    """
    overrides: Tuple[Tuple[PaymentKey, ManualMatch], ...] = ()
    deleted_payments: FrozenSet[PaymentKey] = frozenset()
    deleted_loans: FrozenSet[int] = frozenset()

    def override_for(self, key: PaymentKey) -> Optional[ManualMatch]:
        for k, match in self.overrides:
            if k == key:
                return match
        return None

    @property
    def overridden_keys(self) -> List[PaymentKey]:
        return [k for k, _ in self.overrides]

    def _without_override(self, key: PaymentKey) -> Tuple[Tuple[PaymentKey, ManualMatch], ...]:
        return tuple((k, m) for k, m in self.overrides if k != key)

    def delete_payment(self, key: PaymentKey) -> "EditOverlay":
        return replace(self, deleted_payments=self.deleted_payments | {key})

    def restore_payment(self, key: PaymentKey) -> "EditOverlay":
        """Undelete a line and drop its override, back to the extracted match."""
        return replace(
            self,
            overrides=self._without_override(key),
            deleted_payments=self.deleted_payments - {key},
        )

    def assign_payment(self, key: PaymentKey, match: ManualMatch) -> "EditOverlay":
        overrides = sorted(self._without_override(key) + ((key, match),), key=lambda pair: pair[0])
        return replace(self, overrides=tuple(overrides))

    def delete_loan(self, index: int) -> "EditOverlay":
        return replace(self, deleted_loans=self.deleted_loans | {index})

    def restore_loan(self, index: int) -> "EditOverlay":
        return replace(self, deleted_loans=self.deleted_loans - {index})

    @property
    def is_empty(self) -> bool:
        return not (self.overrides or self.deleted_payments or self.deleted_loans)


@dataclass(frozen=True)
class EffectiveDataset:
    """The extraction with the overlay applied.

    `loan_indices[i]` is the original index of `loans[i]`.
    """
    payments: Tuple[PaymentGroup, ...] = ()
    loans: Tuple[LoanLine, ...] = ()
    expenses: Tuple[ExpenseLine, ...] = ()
    loan_indices: Tuple[int, ...] = ()
    has_errors: bool = False


def project_effective(result: OCRResult, overlay: EditOverlay) -> EffectiveDataset:
    """Apply overlay to result without modifying either.

    Deleted lines are removed, overridden lines get the manual match, and
    the remaining lines keep their extraction order.
    """
    payments = []
    for g_idx, group in enumerate(result.payments):
        lines = []
        for l_idx, line in enumerate(group.client_payments):
            key = (g_idx, l_idx)
            if key in overlay.deleted_payments:
                continue
            match = overlay.override_for(key)
            if match is not None:
                line = apply_manual_match(line, match)
            lines.append(line)
        payments.append(group.model_copy(update={"client_payments": tuple(lines)}))

    loans = []
    loan_indices = []
    for idx, loan in enumerate(result.loans):
        if idx in overlay.deleted_loans:
            continue
        loans.append(loan)
        loan_indices.append(idx)

    return EffectiveDataset(
        payments=tuple(payments),
        loans=tuple(loans),
        expenses=tuple(result.expenses),
        loan_indices=tuple(loan_indices),
        has_errors=result.has_errors,
    )
