"""Ledger GraphQL Client.

Low-level HTTP client for the persistence API. Sends the ConfirmOCRBatch
mutation that records a reviewed batch in one transaction.

A commit is all-or-nothing on the server side and is never retried here:
a failed request means nothing was saved and the operator decides whether
to submit again.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import aiohttp

from core.models.ledger import CommitResult, ConfirmBatchInput
from core.observability.logging import get_logger
from core.settings import get_settings

logger = get_logger(__name__)


CONFIRM_OCR_BATCH_MUTATION = """
mutation ConfirmOCRBatch($input: ConfirmOCRBatchInput!) {
  confirmOCRBatch(input: $input) {
    paymentsCreated
    loansCreated
    expensesCreated
  }
}
"""


class CommitError(Exception):
    """Base exception for commit failures. Nothing was saved."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class CommitTransportError(CommitError):
    """The request did not complete (network, timeout, 5xx, bad body)."""
    pass


class CommitRejectedError(CommitError):
    """The server answered with GraphQL errors or a 4xx status."""
    pass


@dataclass
class LedgerClientConfig:
    """Configuration for the ledger client."""
    graphql_url: str
    api_token: Optional[str] = None
    timeout_seconds: int = 30

    @classmethod
    def from_settings(cls) -> "LedgerClientConfig":
        settings = get_settings()
        return cls(
            graphql_url=settings.graphql_url,
            api_token=settings.api_token,
            timeout_seconds=settings.commit_timeout_seconds,
        )


class LedgerClient:
    """GraphQL client for the ledger persistence API.

    Usage:
        async with LedgerClient() as client:
            result = await client.confirm_batch(batch_input)
    """

    def __init__(self, config: Optional[LedgerClientConfig] = None):
        self.config = config or LedgerClientConfig.from_settings()
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()

    async def disconnect(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "LedgerClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.config.api_token:
            headers["Authorization"] = f"Bearer {self.config.api_token}"
        return headers

    async def _post(self, body: Dict[str, Any]) -> Tuple[int, str]:
        """POST a GraphQL body and return (status, response text).

        Raises:
            CommitTransportError: Not connected, network failure or timeout
        """
        if not self._session:
            raise CommitTransportError("Not connected. Call connect() first.")

        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
        try:
            async with self._session.post(
                self.config.graphql_url,
                headers=self._get_headers(),
                json=body,
                timeout=timeout,
            ) as response:
                return response.status, await response.text()
        except asyncio.TimeoutError:
            raise CommitTransportError(
                f"Request timed out after {self.config.timeout_seconds}s"
            )
        except aiohttp.ClientError as e:
            raise CommitTransportError(f"Request failed: {e}")

    async def execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Run a GraphQL operation and return its `data`.

        Raises:
            CommitTransportError: Transport failure, 5xx or unparseable body
            CommitRejectedError: GraphQL errors or 4xx status
        """
        status, text = await self._post({"query": query, "variables": variables})

        if status >= 500:
            raise CommitTransportError(f"Server error {status}: {text}", status, text)

        try:
            body = json.loads(text) if text else {}
        except ValueError:
            if status >= 400:
                raise CommitRejectedError(f"API error {status}: {text}", status, text)
            raise CommitTransportError(f"Invalid JSON response ({status})", status, text)

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            messages = [e.get("message", "") for e in errors if isinstance(e, dict)]
            message = "; ".join(m for m in messages if m) or "Unknown GraphQL error"
            raise CommitRejectedError(message, status, text)

        if status >= 400:
            raise CommitRejectedError(f"API error {status}: {text}", status, text)

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise CommitTransportError("Response has no data", status, text)
        return data

    async def confirm_batch(self, batch_input: ConfirmBatchInput) -> CommitResult:
        """Persist a reviewed batch.

        Args:
            batch_input: Payload built from a gate-cleared review

        Returns:
            Counts of created payments, loans and expenses
        """
        logger.info(
            "Submitting batch",
            extra_fields={
                "payments": len(batch_input.payments),
                "loans": len(batch_input.loans),
                "expenses": len(batch_input.expenses),
            },
        )
        data = await self.execute(CONFIRM_OCR_BATCH_MUTATION, batch_input.to_variables())

        payload = data.get("confirmOCRBatch")
        if not isinstance(payload, dict):
            raise CommitRejectedError("confirmOCRBatch returned no result")

        result = CommitResult.model_validate(payload)
        logger.info(
            "Batch committed",
            extra_fields=result.model_dump(),
        )
        return result
