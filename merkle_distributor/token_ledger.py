"""Token ledgers the distributor pays claims out of.

The distributor only needs
``transfer(sender, recipient, amount, reference=None) -> bool``.
A ``False`` result must mean that no funds moved; the distributor relies on
this to roll a failed claim back cleanly. ``reference`` identifies the claim
being paid (distributor, root and index) so a ledger can recognise a retry
of a transfer it already committed.

``InMemoryToken`` is a process-local ledger for development and tests.
``HttpTokenLedger`` forwards transfers to an external ledger service over
HTTP.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol, runtime_checkable

import httpx
from eth_utils import to_checksum_address

from merkle_distributor.config import settings

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenLedger(Protocol):
    @property
    def address(self) -> str: ...

    def transfer(
        self, sender: str, recipient: str, amount: int, reference: str | None = None
    ) -> bool: ...


class InMemoryToken:
    """Thread-safe in-memory balance ledger."""

    def __init__(
        self,
        balances: dict[str, int] | None = None,
        address: str = "0x00000000000000000000000000000000000070ce",
    ) -> None:
        self._address = to_checksum_address(address)
        self._balances: dict[str, int] = {}
        self._lock = threading.Lock()
        for account, amount in (balances or {}).items():
            self.set_balance(account, amount)

    @property
    def address(self) -> str:
        return self._address

    def set_balance(self, account: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Balance must not be negative: {amount}")
        with self._lock:
            self._balances[to_checksum_address(account)] = amount

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self._balances.get(to_checksum_address(account), 0)

    def transfer(
        self, sender: str, recipient: str, amount: int, reference: str | None = None
    ) -> bool:
        sender = to_checksum_address(sender)
        recipient = to_checksum_address(recipient)
        with self._lock:
            available = self._balances.get(sender, 0)
            if amount < 0:
                logger.warning("Refusing negative transfer of %d from %s", amount, sender)
                return False
            if available < amount:
                logger.warning(
                    "Transfer amount exceeds balance: %s has %d, needs %d",
                    sender,
                    available,
                    amount,
                )
                return False
            self._balances[sender] = available - amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
            return True


class HttpTokenLedger:
    """Client for an external ledger service exposing ``POST /transfers``."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.base_url = (base_url if base_url is not None else settings.token_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.token_api_key
        self._timeout = (
            timeout_seconds if timeout_seconds is not None else settings.token_timeout_seconds
        )

    @property
    def address(self) -> str:
        return self.base_url

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def transfer(
        self, sender: str, recipient: str, amount: int, reference: str | None = None
    ) -> bool:
        payload = {"from": sender, "to": recipient, "amount": str(amount)}
        headers = self._headers()
        if reference:
            payload["reference"] = reference
            headers["Idempotency-Key"] = reference
        try:
            with httpx.Client(timeout=self._timeout, headers=headers) as client:
                resp = client.post(f"{self.base_url}/transfers", json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Transfer request to %s failed: %s", self.base_url, exc)
            return False

        if not resp.is_success:
            logger.warning(
                "Ledger rejected transfer of %d to %s (status %d)",
                amount,
                recipient,
                resp.status_code,
            )
            return False
        return True
