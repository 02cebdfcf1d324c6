"""Claim ledger: pays out entitlements against a committed Merkle root.

Lifecycle
=========

A distributor starts *uninitialised*, becomes *active* once its Merkle root
is committed (at construction or through ``initialize``), and stays active
for the lifetime of the distribution. The root can never be replaced.

Each index moves from unclaimed to claimed exactly once. ``claim`` runs the
whole check / verify / mark / transfer sequence under one lock, and a failed
transfer unmarks the index before the error propagates, so a claim either
fully succeeds or leaves no trace.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence

from eth_utils import decode_hex, to_checksum_address

from merkle_distributor.balance_tree import verify_proof
from merkle_distributor.config import settings
from merkle_distributor.exceptions import (
    AlreadyClaimedError,
    AlreadyInitializedError,
    InvalidProofError,
    NotInitializedError,
    TransferFailedError,
)
from merkle_distributor.merkle import HASH_SIZE
from merkle_distributor.schemas import ClaimedEvent
from merkle_distributor.token_ledger import TokenLedger

logger = logging.getLogger(__name__)

ClaimListener = Callable[[ClaimedEvent], None]


class ClaimedBitMap:
    """Sparse set of claimed indices packed into 256-bit words."""

    WORD_BITS = 256

    def __init__(self) -> None:
        self._words: dict[int, int] = {}
        self._count = 0

    def __contains__(self, index: object) -> bool:
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            return False
        word, bit = divmod(index, self.WORD_BITS)
        return bool(self._words.get(word, 0) >> bit & 1)

    def __len__(self) -> int:
        return self._count

    def add(self, index: int) -> None:
        if index in self:
            return
        word, bit = divmod(index, self.WORD_BITS)
        self._words[word] = self._words.get(word, 0) | (1 << bit)
        self._count += 1

    def discard(self, index: int) -> None:
        if index not in self:
            return
        word, bit = divmod(index, self.WORD_BITS)
        remaining = self._words[word] & ~(1 << bit)
        if remaining:
            self._words[word] = remaining
        else:
            del self._words[word]
        self._count -= 1


class MerkleDistributor:
    """Lets each recipient claim their entitlement once, by Merkle proof."""

    def __init__(
        self,
        token: TokenLedger,
        merkle_root: bytes | str | None = None,
        address: str | None = None,
    ) -> None:
        self._token = token
        self._address = to_checksum_address(
            address if address is not None else settings.distributor_address
        )
        self._merkle_root: bytes | None = None
        self._claimed = ClaimedBitMap()
        self._events: list[ClaimedEvent] = []
        self._listeners: list[ClaimListener] = []
        self._lock = threading.Lock()
        if merkle_root is not None:
            self.initialize(merkle_root)

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def token(self) -> TokenLedger:
        return self._token

    @property
    def address(self) -> str:
        return self._address

    @property
    def merkle_root(self) -> bytes | None:
        return self._merkle_root

    @property
    def hex_root(self) -> str | None:
        if self._merkle_root is None:
            return None
        return "0x" + self._merkle_root.hex()

    @property
    def initialized(self) -> bool:
        return self._merkle_root is not None

    @property
    def claimed_count(self) -> int:
        with self._lock:
            return len(self._claimed)

    @property
    def events(self) -> list[ClaimedEvent]:
        with self._lock:
            return list(self._events)

    def is_claimed(self, index: int) -> bool:
        with self._lock:
            return index in self._claimed

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def initialize(self, merkle_root: bytes | str) -> None:
        """Commit the Merkle root. Allowed exactly once."""
        if isinstance(merkle_root, str):
            merkle_root = decode_hex(merkle_root)
        root = bytes(merkle_root)
        if len(root) != HASH_SIZE:
            raise ValueError(f"Expected 32-byte Merkle root, got {len(root)} bytes")

        with self._lock:
            if self._merkle_root is not None:
                raise AlreadyInitializedError(
                    f"Merkle root already committed: 0x{self._merkle_root.hex()}"
                )
            self._merkle_root = root

        logger.info("Distributor %s initialised with root 0x%s...", self._address, root.hex()[:16])

    def _claim_reference(self, index: int) -> str:
        return f"{self._address}:0x{self._merkle_root.hex()}:{index}"

    def subscribe(self, listener: ClaimListener) -> None:
        """Register a callback invoked with every ``ClaimedEvent``."""
        self._listeners.append(listener)

    def claim(
        self,
        index: int,
        account: str,
        amount: int,
        proof: Sequence[bytes | str],
    ) -> ClaimedEvent:
        """Pay *amount* to *account* if the proof places it at *index*.

        Raises:
            NotInitializedError: no Merkle root has been committed.
            AlreadyClaimedError: *index* was already paid out.
            InvalidProofError: the proof does not verify against the root.
            TransferFailedError: the token ledger refused the transfer; the
                index stays unclaimed and the claim can be retried.
        """
        with self._lock:
            if self._merkle_root is None:
                raise NotInitializedError("Distributor has no Merkle root")
            if index in self._claimed:
                logger.warning("Rejected replayed claim for index %s", index)
                raise AlreadyClaimedError(index)
            if not verify_proof(index, account, amount, proof, self._merkle_root):
                logger.warning("Rejected invalid proof for index %s (%s)", index, account)
                raise InvalidProofError(index)

            account = to_checksum_address(account)
            self._claimed.add(index)
            transferred = False
            try:
                transferred = bool(
                    self._token.transfer(
                        self._address, account, amount, reference=self._claim_reference(index)
                    )
                )
            except Exception as exc:
                raise TransferFailedError(index, account, amount, str(exc)) from exc
            finally:
                # Interrupts and cancellations must not leave the index marked.
                if not transferred:
                    self._claimed.discard(index)
            if not transferred:
                raise TransferFailedError(index, account, amount, "ledger refused transfer")

            event = ClaimedEvent(
                index=index,
                account=account,
                amount=amount,
                merkle_root="0x" + self._merkle_root.hex(),
            )
            self._events.append(event)

        if settings.log_claims:
            logger.info("Claimed index=%d account=%s amount=%d", index, account, amount)

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Claim listener failed for index %d", index)

        return event
