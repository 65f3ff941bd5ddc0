"""
Observability Module for the Reconciliation Service

Provides:
- Structured logging with correlation IDs (review session, route, business date)
- Review event logging for operator actions and commit attempts
"""

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
    log_review_event,
)

__all__ = [
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
    "log_review_event",
]
