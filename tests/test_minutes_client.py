"""Tests for meeting_transcriber.storage.minutes_client module."""

import json
from unittest.mock import patch

import pytest

from meeting_transcriber.storage.minutes_client import MinutesBackendClient
from meeting_transcriber.utils.errors import BillingError

BASE_URL = "https://billing.example.com"


async def _no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def client():
    return MinutesBackendClient(base_url=BASE_URL, api_key="anon-key")


class TestMinutesBackendClientInit:
    def test_strips_trailing_slash(self):
        client = MinutesBackendClient(base_url=f"{BASE_URL}/", api_key="k")
        assert client.base_url == BASE_URL

    def test_missing_url_raises(self, monkeypatch):
        monkeypatch.delenv("BILLING_URL", raising=False)
        with pytest.raises(BillingError, match="BILLING_URL"):
            MinutesBackendClient(api_key="k")

    def test_missing_key_raises(self, monkeypatch):
        monkeypatch.delenv("BILLING_API_KEY", raising=False)
        with pytest.raises(BillingError, match="BILLING_API_KEY"):
            MinutesBackendClient(base_url=BASE_URL)

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("BILLING_URL", BASE_URL)
        monkeypatch.setenv("BILLING_API_KEY", "env-key")
        client = MinutesBackendClient()
        assert client.api_key == "env-key"


class TestMinutesBackendClientCalls:
    async def test_get_balance(self, client, httpx_mock):
        httpx_mock.add_response(
            url=f"{BASE_URL}/rest/v1/rpc/get_minutes_balance",
            method="POST",
            json=42,
        )

        assert await client.get_balance() == 42

        request = httpx_mock.get_request()
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["Authorization"] == "Bearer anon-key"

    async def test_access_token_used_for_bearer(self, httpx_mock):
        httpx_mock.add_response(
            url=f"{BASE_URL}/rest/v1/rpc/get_minutes_balance", json=7
        )
        client = MinutesBackendClient(
            base_url=BASE_URL, api_key="anon-key", access_token="user-jwt"
        )

        await client.get_balance()

        assert httpx_mock.get_request().headers["Authorization"] == "Bearer user-jwt"

    async def test_debit_sends_amount_and_meeting(self, client, httpx_mock):
        httpx_mock.add_response(
            url=f"{BASE_URL}/rest/v1/rpc/debit_minutes", json=38
        )

        balance = await client.debit_minutes(4, meeting_id="meeting-1")

        assert balance == 38
        body = json.loads(httpx_mock.get_request().content)
        assert body == {"p_amount": 4, "p_meeting_id": "meeting-1"}

    async def test_credit_sends_transaction(self, client, httpx_mock):
        httpx_mock.add_response(
            url=f"{BASE_URL}/rest/v1/rpc/credit_minutes", json=160
        )

        balance = await client.credit_minutes(
            120, "purchase", transaction_id="store-tx-1", metadata={"pack": "120"}
        )

        assert balance == 160
        body = json.loads(httpx_mock.get_request().content)
        assert body["p_transaction_id"] == "store-tx-1"
        assert body["p_metadata"] == {"pack": "120"}

    async def test_transient_error_retried(self, client, httpx_mock):
        url = f"{BASE_URL}/rest/v1/rpc/get_minutes_balance"
        httpx_mock.add_response(url=url, status_code=503)
        httpx_mock.add_response(url=url, json=10)

        with patch("meeting_transcriber.utils.retry.asyncio.sleep", side_effect=_no_sleep):
            assert await client.get_balance() == 10

        assert len(httpx_mock.get_requests()) == 2

    async def test_client_error_raises_billing_error(self, client, httpx_mock):
        httpx_mock.add_response(
            url=f"{BASE_URL}/rest/v1/rpc/debit_minutes", status_code=403
        )

        with pytest.raises(BillingError, match="debit_minutes") as exc_info:
            await client.debit_minutes(1)

        assert exc_info.value.operation == "debit_minutes"
        assert len(httpx_mock.get_requests()) == 1

    async def test_non_integer_balance_raises(self, client, httpx_mock):
        httpx_mock.add_response(
            url=f"{BASE_URL}/rest/v1/rpc/get_minutes_balance", json={"balance": 3}
        )

        with pytest.raises(BillingError, match="non-integer"):
            await client.get_balance()
