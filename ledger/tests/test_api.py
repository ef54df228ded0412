"""
HTTP Tests for the Ledger API

Each test works on a fresh user id, so the shared registry never leaks
entries between tests.
"""

import pytest
from uuid import uuid4

from fastapi.testclient import TestClient

import ledger.api
from filters.llm_parser import LLMParser


@pytest.fixture
def client():
    return TestClient(ledger.api.app)


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def seeded(client, user_id):
    client.post(f"/users/{user_id}/transactions", json={
        "amount": "100", "type": "Deposit", "date": "2022-01-01T00:00:00Z",
    })
    client.post(f"/users/{user_id}/transactions", json={
        "amount": "50", "type": "Withdrawal", "date": "2024-03-15T12:00:00Z",
    })
    return user_id


class TestHealth:
    def test_health(self, client):
        """Test the liveness endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAddTransaction:
    """Tests for POST /users/{user_id}/transactions."""

    def test_add_returns_entry(self, client, user_id):
        """Test that a created entry comes back with its id."""
        response = client.post(f"/users/{user_id}/transactions", json={"amount": "12.50", "type": "Deposit"})

        assert response.status_code == 201
        body = response.json()
        assert body["id"] == 0
        assert body["type"] == "Deposit"

    def test_negative_amount_is_400(self, client, user_id):
        """Test that the ledger's negative amount error maps to 400."""
        response = client.post(f"/users/{user_id}/transactions", json={"amount": "-5", "type": "Withdrawal"})

        assert response.status_code == 400
        assert "negative" in response.json()["detail"]
        assert client.get(f"/users/{user_id}/balance").json()["total_entries"] == 0

    def test_unknown_type_is_422(self, client, user_id):
        """Test that request validation rejects unknown types."""
        response = client.post(f"/users/{user_id}/transactions", json={"amount": "5", "type": "Transfer"})

        assert response.status_code == 422


class TestListTransactions:
    """Tests for GET /users/{user_id}/transactions."""

    def test_no_criteria_returns_everything(self, client, seeded):
        """Test that an empty filter lists all entries in order."""
        body = client.get(f"/users/{seeded}/transactions").json()

        assert [e["id"] for e in body["entries"]] == [0, 1]
        assert body["criteria"] == []

    def test_year_filter(self, client, seeded):
        """Test the year criterion through the query string."""
        body = client.get(f"/users/{seeded}/transactions", params={"criteria": "year 2022"}).json()

        assert [e["id"] for e in body["entries"]] == [0]
        assert body["total_count"] == 1
        assert body["criteria"] == ["year", "2022"]

    def test_conjunction_can_be_empty(self, client, seeded):
        """Test that non-overlapping criteria return nothing."""
        response = client.get(f"/users/{seeded}/transactions", params={"criteria": "year 2022 type withdrawal"})

        assert response.status_code == 200
        assert response.json()["entries"] == []

    @pytest.mark.parametrize("criteria, fragment", [
        ("year", "pairs"),
        ("colour blue", "Unknown filter field"),
        ("min lots", "Invalid value"),
    ])
    def test_bad_criteria_is_400(self, client, seeded, criteria, fragment):
        """Test that filter errors map to 400 with the error text."""
        response = client.get(f"/users/{seeded}/transactions", params={"criteria": criteria})

        assert response.status_code == 400
        assert fragment in response.json()["detail"]


class TestSearch:
    """Tests for natural-language search."""

    def test_search_uses_local_parser(self, client, seeded, monkeypatch):
        """Test search without a Groq key."""
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        monkeypatch.setattr(ledger.api, "query_parser", LLMParser(engine=ledger.api.filter_engine))

        response = client.post(f"/users/{seeded}/transactions/search", json={"query": "withdrawals over $20"})

        body = response.json()
        assert response.status_code == 200
        assert body["criteria"] == ["type", "withdrawal", "min", "20"]
        assert [e["id"] for e in body["entries"]] == [1]


class TestBalance:
    """Tests for GET /users/{user_id}/balance."""

    def test_balance_message(self, client, seeded):
        """Test balance, count and the summary message."""
        body = client.get(f"/users/{seeded}/balance").json()

        assert body["current_balance"] == "50"
        assert body["total_entries"] == 2
        assert body["message"] == "Your current balance is $50. You've made a total of 2 transactions."


class TestReadsDoNotOpenLedgers:
    """Tests that reads for unknown users leave the registry alone."""

    def test_balance_for_unknown_user(self, client, user_id):
        """Test that an unknown user has a zero balance and no ledger."""
        body = client.get(f"/users/{user_id}/balance").json()

        assert body["current_balance"] == "0"
        assert body["total_entries"] == 0
        assert user_id not in ledger.api.ledger_registry

    def test_list_and_search_for_unknown_user(self, client, user_id, monkeypatch):
        """Test that listing and searching return nothing and open nothing."""
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        monkeypatch.setattr(ledger.api, "query_parser", LLMParser(engine=ledger.api.filter_engine))
        before = len(ledger.api.ledger_registry)

        listed = client.get(f"/users/{user_id}/transactions", params={"criteria": "year 2022"})
        searched = client.post(f"/users/{user_id}/transactions/search", json={"query": "deposits"})

        assert listed.status_code == 200
        assert listed.json()["entries"] == []
        assert searched.json()["entries"] == []
        assert len(ledger.api.ledger_registry) == before

    def test_bad_criteria_for_unknown_user_is_400(self, client, user_id):
        """Test that criteria are still checked when there is no ledger."""
        response = client.get(f"/users/{user_id}/transactions", params={"criteria": "colour blue"})

        assert response.status_code == 400

    def test_add_opens_ledger(self, client, user_id):
        """Test that the first write creates the ledger."""
        client.post(f"/users/{user_id}/transactions", json={"amount": "1", "type": "Deposit"})

        assert user_id in ledger.api.ledger_registry


class TestCloseLedger:
    """Tests for DELETE /users/{user_id}/ledger."""

    def test_close_then_reopen_empty(self, client, seeded):
        """Test that closing a session discards its entries."""
        assert client.delete(f"/users/{seeded}/ledger").status_code == 204

        body = client.get(f"/users/{seeded}/balance").json()
        assert body["total_entries"] == 0

    def test_close_unknown_user_is_404(self, client, user_id):
        """Test closing a session that was never opened."""
        assert client.delete(f"/users/{user_id}/ledger").status_code == 404
