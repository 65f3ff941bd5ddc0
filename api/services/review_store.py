"""In-memory registry of open review sessions.

Sessions live for as long as the process does. The commit guard relies on
the event loop: the status flips to COMMITTING before the first await, so a
second submit for the same review sees it and is rejected.
"""

from typing import Callable, Dict

from connectors.ledger_client import LedgerClient
from core.models.ledger import CommitResult
from core.observability.logging import get_logger
from reconciliation import session as review
from reconciliation.errors import CommitInFlightError, ReconciliationError
from reconciliation.session import ReviewSession, SessionStatus

logger = get_logger(__name__)


class ReviewNotFoundError(ReconciliationError):
    """No open review with that id."""
    def __init__(self, session_id: str):
        super().__init__(f"Review {session_id} not found")
        self.session_id = session_id


class ReviewStore:
    """Holds the current value of every review session by id."""

    def __init__(self):
        self._sessions: Dict[str, ReviewSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, session: ReviewSession) -> ReviewSession:
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> ReviewSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise ReviewNotFoundError(session_id)

    def apply(self, session_id: str, action: Callable[..., ReviewSession], *args) -> ReviewSession:
        """Run an operator action and store the resulting session."""
        updated = action(self.get(session_id), *args)
        self._sessions[session_id] = updated
        return updated

    def discard(self, session_id: str) -> None:
        """Drop a review. Refused while its commit is outstanding.

        Raises:
            ReviewNotFoundError: No review with that id
            CommitInFlightError: The review is being committed
        """
        if self.get(session_id).status == SessionStatus.COMMITTING:
            raise CommitInFlightError(f"Review {session_id} is being committed")
        del self._sessions[session_id]
        logger.info("Review discarded", extra_fields={"review_session_id": session_id})

    async def commit(self, session_id: str, client: LedgerClient) -> CommitResult:
        """Submit a review through the ledger client.

        Raises:
            BatchNotReadyError: Blocking issues remain
            CommitInFlightError: A commit for this review is outstanding
            CommitError: The ledger rejected or never received the batch;
                the review is reopened with its edits
        """
        current = self.get(session_id)
        batch_input = review.build_confirm_input(current)
        committing = review.begin_commit(current)
        self._sessions[session_id] = committing

        try:
            result = await client.confirm_batch(batch_input)
        except Exception as e:
            self._sessions[session_id] = review.abort_commit(committing, str(e))
            raise

        self._sessions[session_id] = review.complete_commit(committing)
        return result


_store = ReviewStore()


def get_review_store() -> ReviewStore:
    return _store
