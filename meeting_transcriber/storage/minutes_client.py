"""Minutes-balance backend client.

Calls the billing backend's RPC endpoints (PostgREST style:
POST {base_url}/rest/v1/rpc/<function>) to read the balance and to debit or
credit transcription minutes. Transient failures are retried; anything that
still fails surfaces as BillingError.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from meeting_transcriber.utils.errors import (
    BillingError,
    NetworkFailureError,
    ServerFailureError,
    TranscriptionError,
)
from meeting_transcriber.utils.retry import GENERIC_POLICY, retry_with_backoff

logger = logging.getLogger(__name__)


class MinutesBackendClient:
    """Client for minutes-balance RPCs.

    Reads configuration from environment variables when not passed:
        BILLING_URL, BILLING_API_KEY
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        access_token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or os.environ.get("BILLING_URL", "")).rstrip("/")
        self.api_key = api_key or os.environ.get("BILLING_API_KEY", "")
        self.access_token = access_token

        if not self.base_url:
            raise BillingError("BILLING_URL is required", operation="init")
        if not self.api_key:
            raise BillingError("BILLING_API_KEY is required", operation="init")

        self._client = client or httpx.AsyncClient(timeout=30.0)

    def _headers(self) -> dict[str, str]:
        """Build authentication headers for RPC endpoints."""
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }

    async def close(self) -> None:
        """Close the shared HTTP client and release connection pool."""
        await self._client.aclose()

    @retry_with_backoff(policy=GENERIC_POLICY)
    async def _rpc(self, function: str, payload: dict[str, Any]) -> Any:
        url = f"{self.base_url}/rest/v1/rpc/{function}"
        try:
            response = await self._client.post(
                url, headers=self._headers(), json=payload
            )
        except httpx.RequestError as exc:
            raise NetworkFailureError(
                f"RPC {function} failed: {exc}", cause=exc
            ) from exc

        if response.status_code >= 400:
            raise ServerFailureError(
                f"RPC {function} failed: HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.content:
            return None
        return response.json()

    async def _call(self, operation: str, payload: dict[str, Any]) -> Any:
        try:
            return await self._rpc(operation, payload)
        except TranscriptionError as exc:
            raise BillingError(
                f"Billing call '{operation}' failed: {exc}", operation=operation
            ) from exc
        except ValueError as exc:
            raise BillingError(
                f"Billing call '{operation}' returned invalid JSON",
                operation=operation,
            ) from exc

    @staticmethod
    def _as_balance(value: Any, operation: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise BillingError(
                f"Billing call '{operation}' returned non-integer balance: {value!r}",
                operation=operation,
            )
        return value

    async def get_balance(self) -> int:
        """Return the current minutes balance.

        Raises:
            BillingError: If the RPC fails or returns a non-integer.
        """
        result = await self._call("get_minutes_balance", {})
        return self._as_balance(result, "get_minutes_balance")

    async def debit_minutes(self, amount: int, meeting_id: str | None = None) -> int:
        """Debit `amount` minutes and return the new balance.

        The balance may go negative; the backend allows it temporarily.

        Raises:
            BillingError: If the RPC fails or returns a non-integer.
        """
        result = await self._call(
            "debit_minutes", {"p_amount": amount, "p_meeting_id": meeting_id}
        )
        balance = self._as_balance(result, "debit_minutes")
        logger.info("Debited %d minutes, new balance %d", amount, balance)
        return balance

    async def credit_minutes(
        self,
        amount: int,
        reason: str,
        transaction_id: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> int:
        """Credit `amount` minutes and return the new balance.

        Raises:
            BillingError: If the RPC fails or returns a non-integer.
        """
        result = await self._call(
            "credit_minutes",
            {
                "p_amount": amount,
                "p_reason": reason,
                "p_transaction_id": transaction_id,
                "p_metadata": metadata or {},
            },
        )
        balance = self._as_balance(result, "credit_minutes")
        logger.info(
            "Credited %d minutes (%s), new balance %d", amount, reason, balance
        )
        return balance
