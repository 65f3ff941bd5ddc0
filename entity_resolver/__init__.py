"""Entity Resolver - client match resolution for extracted payment lines.

Extraction matches most lines automatically. This package handles what an
operator does on top of that: picking a client from search results and
turning it into a certain (`alta`/`manual`) match.

Usage:
    from entity_resolver import ClientMatcher, ClientCandidate

    matcher = ClientMatcher()
    reassignment = matcher.reassign(line, ClientCandidate(borrower_id="b1", active_loan_ids=["l1"]))

    if reassignment.accepted:
        match = reassignment.match
"""

from entity_resolver.models import (
    ClientCandidate,
    ManualMatch,
    Reassignment,
)
from entity_resolver.resolver import (
    ClientMatcher,
    apply_manual_match,
    worst_confidence,
    confidence_breakdown,
    NO_ACTIVE_LOAN_REASON,
)

__all__ = [
    # Models
    "ClientCandidate",
    "ManualMatch",
    "Reassignment",
    # Resolver
    "ClientMatcher",
    "apply_manual_match",
    "worst_confidence",
    "confidence_breakdown",
    "NO_ACTIVE_LOAN_REASON",
]
