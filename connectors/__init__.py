"""Connectors to external systems.

The ledger client is the only outbound dependency: it persists reviewed
batches through the ConfirmOCRBatch GraphQL mutation.
"""

from connectors.ledger_client import (
    CONFIRM_OCR_BATCH_MUTATION,
    CommitError,
    CommitRejectedError,
    CommitTransportError,
    LedgerClient,
    LedgerClientConfig,
)

__all__ = [
    "CONFIRM_OCR_BATCH_MUTATION",
    "CommitError",
    "CommitRejectedError",
    "CommitTransportError",
    "LedgerClient",
    "LedgerClientConfig",
]
