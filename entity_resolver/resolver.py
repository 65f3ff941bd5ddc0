"""Client match resolution.

Lines arrive from extraction already matched (by client code or by name) or
unmatched. An operator can search the database and pick a client for any
payment line. The rules implemented here:

1. A payment must resolve to a loan, not just a borrower. A candidate with
   no active loan is not selectable when an active loan is required.
2. A selected candidate resolves the line to its first active loan.
3. A manual match is certain: confidence becomes `alta`, method `manual`,
   regardless of the original OCR confidence.
"""

from collections import Counter
from typing import Dict, Iterable, Optional

from core.models.canonical import ClientPaymentLine, MatchConfidence, MatchMethod
from entity_resolver.models import ClientCandidate, ManualMatch, Reassignment


NO_ACTIVE_LOAN_REASON = "Sin préstamo activo"


class ClientMatcher:
    """Resolves payment lines to database clients chosen by an operator.

    Example:
        matcher = ClientMatcher()
        reassignment = matcher.reassign(line, candidate)

        if reassignment.accepted:
            overlay = overlay.assign_payment(key, reassignment.match)
        else:
            print(reassignment.reason)
    """

    def __init__(self, require_active_loan: bool = True):
        """Initialize the matcher.

        Args:
            require_active_loan: Reject candidates without an active loan
        """
        self.require_active_loan = require_active_loan

    def is_selectable(self, candidate: ClientCandidate) -> bool:
        """Whether the candidate can be picked in a search result list."""
        if not candidate.borrower_id:
            return False
        if self.require_active_loan and not candidate.has_active_loan:
            return False
        return True

    def reassign(
        self,
        line: Optional[ClientPaymentLine],
        candidate: ClientCandidate,
    ) -> Reassignment:
        """Build the manual match for assigning a candidate to a line.

        Args:
            line: The line being corrected
            candidate: The client picked by the operator

        Returns:
            Reassignment; rejected candidates are reported, not raised
        """
        if not self.is_selectable(candidate):
            return Reassignment(accepted=False, match=None, reason=NO_ACTIVE_LOAN_REASON)

        match = ManualMatch(
            resolved_borrower_id=candidate.borrower_id,
            resolved_loan_id=candidate.active_loan_ids[0] if candidate.active_loan_ids else None,
            db_client_name=candidate.name or None,
            db_client_code=candidate.client_code or None,
        )
        return Reassignment(accepted=True, match=match)


def apply_manual_match(line: ClientPaymentLine, match: ManualMatch) -> ClientPaymentLine:
    """Return a copy of line with the override's match fields."""
    return line.model_copy(update={
        "resolved_loan_id": match.resolved_loan_id,
        "resolved_borrower_id": match.resolved_borrower_id,
        "db_client_name": match.db_client_name,
        "db_client_code": match.db_client_code,
        "match_confidence": MatchConfidence.ALTA,
        "match_method": MatchMethod.MANUAL,
    })


def worst_confidence(confidences: Iterable[MatchConfidence]) -> Optional[MatchConfidence]:
    """Lowest confidence tier, or None for an empty input."""
    confidences = list(confidences)
    if not confidences:
        return None
    return min(confidences)


def confidence_breakdown(lines: Iterable[ClientPaymentLine]) -> Dict[str, int]:
    """Count of lines per confidence tier, highest tier first."""
    counts = Counter(line.match_confidence for line in lines)
    ordered = sorted(MatchConfidence, reverse=True)
    return {tier.value: counts.get(tier, 0) for tier in ordered}
