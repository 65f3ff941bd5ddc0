"""API tests for the review endpoints."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from api.routes.reviews import get_ledger_client
from api.server import create_app
from api.services.review_store import ReviewStore, get_review_store
from connectors.ledger_client import CommitRejectedError
from core.models.ledger import CommitResult
from reconciliation import session as review
from reconciliation.errors import CommitInFlightError
from reconciliation.session import SessionStatus

from conftest import CASH_FUND_ID, make_accounts, make_group, make_line, make_loan, make_result, make_unmatched_line


class FakeLedgerClient:
    """Stands in for LedgerClient; records submitted payloads."""

    def __init__(self, result=None, error=None):
        self.result = result or CommitResult(payments_created=1, loans_created=0, expenses_created=0)
        self.error = error
        self.calls = []

    async def confirm_batch(self, batch_input):
        self.calls.append(batch_input)
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def store():
    return ReviewStore()


@pytest.fixture
def ledger():
    return FakeLedgerClient()


@pytest.fixture
def client(store, ledger):
    app = create_app()
    app.dependency_overrides[get_review_store] = lambda: store
    app.dependency_overrides[get_ledger_client] = lambda: ledger
    return TestClient(app)


def _create(client, result, accounts=None):
    accounts = accounts if accounts is not None else make_accounts()
    response = client.post("/reviews", json={
        "routeId": "route-7",
        "businessDate": "2024-03-05T00:00:00Z",
        "result": result.model_dump(by_alias=True, mode="json"),
        "accounts": [a.model_dump(by_alias=True, mode="json") for a in accounts],
    })
    assert response.status_code == 201, response.text
    return response.json()


def _blocked_result():
    return make_result(payments=[make_group([make_line(), make_unmatched_line(abono_real="300")])])


class TestCreateAndGet:

    def test_create_clean_review(self, client, clean_result):
        body = _create(client, clean_result)

        assert body["status"] == "OPEN"
        assert body["canConfirm"] is True
        assert body["sourceAccountId"] == CASH_FUND_ID
        assert body["businessDate"] == "2024-03-05T00:00:00.000Z"
        cash = body["impacts"][0]
        assert Decimal(cash["projectedBalance"]) == Decimal("1800")
        assert cash["detailGroups"][0]["name"] == "Centro"

    def test_get_with_filter(self, client, clean_result):
        review_id = _create(client, clean_result)["sessionId"]

        ok = client.get(f"/reviews/{review_id}", params={"filter": "ok"}).json()
        issues = client.get(f"/reviews/{review_id}", params={"filter": "issues"}).json()

        assert [loc["name"] for loc in ok["summary"]["localities"]] == ["Centro"]
        assert issues["summary"]["localities"] == []

    def test_unknown_review(self, client):
        assert client.get("/reviews/nope").status_code == 404


class TestEdits:

    def test_delete_and_restore_payment(self, client):
        review_id = _create(client, _blocked_result())["sessionId"]

        deleted = client.post(f"/reviews/{review_id}/payments/0/1/delete").json()
        assert deleted["canConfirm"] is True
        assert deleted["deletedPayments"] == [[0, 1]]

        restored = client.post(f"/reviews/{review_id}/payments/0/1/restore").json()
        assert restored["canConfirm"] is False
        assert restored["blockingIssues"][0]["message"] == "1 pago(s) sin match"

    def test_assign_payment(self, client):
        review_id = _create(client, _blocked_result())["sessionId"]

        response = client.post(
            f"/reviews/{review_id}/payments/0/1/assign",
            json={"borrowerId": "b-7", "activeLoanIds": ["loan-7"], "name": "Rosa", "clientCode": "RD-01"},
        )

        assert response.status_code == 200
        assert response.json()["canConfirm"] is True
        assert response.json()["overriddenPayments"] == [[0, 1]]

    def test_assign_candidate_without_loan(self, client):
        review_id = _create(client, _blocked_result())["sessionId"]
        response = client.post(f"/reviews/{review_id}/payments/0/1/assign", json={"borrowerId": "b-8"})
        assert response.status_code == 409

    def test_invalid_payment_key(self, client, clean_result):
        review_id = _create(client, clean_result)["sessionId"]
        assert client.post(f"/reviews/{review_id}/payments/3/0/delete").status_code == 404

    def test_loans_and_source_account(self, client):
        result = make_result(payments=[make_group()], loans=[make_loan(delivered_amount="500")])
        review_id = _create(client, result)["sessionId"]

        cleared = client.put(f"/reviews/{review_id}/source-account", json={"accountId": None}).json()
        assert [i["code"] for i in cleared["blockingIssues"]] == ["MISSING_SOURCE_ACCOUNT"]

        deleted = client.post(f"/reviews/{review_id}/loans/0/delete").json()
        assert deleted["canConfirm"] is True
        assert deleted["deletedLoans"] == [0]

        restored = client.post(f"/reviews/{review_id}/loans/0/restore").json()
        assert restored["canConfirm"] is False

        bad = client.put(f"/reviews/{review_id}/source-account", json={"accountId": "acc-missing"})
        assert bad.status_code == 400


class TestBatchAndConfirm:

    def test_batch_preview_blocked(self, client):
        review_id = _create(client, _blocked_result())["sessionId"]

        response = client.get(f"/reviews/{review_id}/batch")

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert [i["message"] for i in detail["blockingIssues"]] == ["1 pago(s) sin match"]

    def test_batch_preview(self, client, clean_result):
        review_id = _create(client, clean_result)["sessionId"]
        payload = client.get(f"/reviews/{review_id}/batch").json()
        assert payload["routeId"] == "route-7"
        assert payload["payments"][0]["paidAmount"] == "800"

    def test_confirm(self, client, clean_result, ledger, store):
        review_id = _create(client, clean_result)["sessionId"]

        response = client.post(f"/reviews/{review_id}/confirm")

        assert response.status_code == 200
        assert response.json() == {"paymentsCreated": 1, "loansCreated": 0, "expensesCreated": 0}
        assert len(ledger.calls) == 1
        assert store.get(review_id).status == SessionStatus.COMMITTED
        assert client.post(f"/reviews/{review_id}/confirm").status_code == 409

    def test_confirm_blocked(self, client, ledger):
        review_id = _create(client, _blocked_result())["sessionId"]
        assert client.post(f"/reviews/{review_id}/confirm").status_code == 409
        assert ledger.calls == []

    def test_commit_failure_keeps_review(self, client, clean_result, ledger, store):
        ledger.error = CommitRejectedError("Ningún dato fue guardado: préstamo inexistente")
        review_id = _create(client, clean_result)["sessionId"]
        client.post(f"/reviews/{review_id}/payments/0/1/delete")

        response = client.post(f"/reviews/{review_id}/confirm")

        assert response.status_code == 502
        assert response.json()["detail"] == "Ningún dato fue guardado: préstamo inexistente"
        session = store.get(review_id)
        assert session.status == SessionStatus.OPEN
        assert session.overlay.deleted_payments == frozenset({(0, 1)})

    def test_discard(self, client, clean_result):
        review_id = _create(client, clean_result)["sessionId"]
        assert client.delete(f"/reviews/{review_id}").status_code == 204
        assert client.get(f"/reviews/{review_id}").status_code == 404


def test_second_commit_while_in_flight(clean_result, accounts):
    store = ReviewStore()
    session = store.add(review.open_review(clean_result, accounts, "route-7", date(2024, 3, 5)))
    attempts = []

    class ReentrantClient(FakeLedgerClient):
        async def confirm_batch(self, batch_input):
            try:
                await store.commit(session.session_id, self)
            except CommitInFlightError as e:
                attempts.append(e)
            return await super().confirm_batch(batch_input)

    ledger = ReentrantClient()
    asyncio.run(store.commit(session.session_id, ledger))

    assert len(attempts) == 1
    assert len(ledger.calls) == 1
    assert store.get(session.session_id).status == SessionStatus.COMMITTED


def test_discard_while_commit_in_flight(clean_result, accounts):
    store = ReviewStore()
    session = store.add(review.open_review(clean_result, accounts, "route-7", date(2024, 3, 5)))
    attempts = []

    class DiscardingClient(FakeLedgerClient):
        async def confirm_batch(self, batch_input):
            try:
                store.discard(session.session_id)
            except CommitInFlightError as e:
                attempts.append(e)
            return await super().confirm_batch(batch_input)

    result = asyncio.run(store.commit(session.session_id, DiscardingClient()))

    assert result.payments_created == 1
    assert len(attempts) == 1
    assert store.get(session.session_id).status == SessionStatus.COMMITTED


def test_delete_endpoint_rejects_committing_review(client, store, clean_result, accounts):
    session = review.open_review(clean_result, accounts, "route-7", date(2024, 3, 5))
    store.add(review.begin_commit(session))

    assert client.delete(f"/reviews/{session.session_id}").status_code == 409
    assert store.get(session.session_id).status == SessionStatus.COMMITTING


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
