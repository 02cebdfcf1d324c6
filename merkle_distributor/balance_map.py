"""Compile an ``account -> amount`` balance map into a distribution artifact.

The artifact carries the Merkle root, the total amount the distributor must
be funded with, and one claim record (index, amount, proof) per account.
The tree's internal layers are discarded once the proofs are extracted.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping

from eth_utils import is_address, to_canonical_address, to_checksum_address

from merkle_distributor.balance_tree import BalanceTree
from merkle_distributor.config import settings
from merkle_distributor.exceptions import (
    AmountOverflowError,
    DuplicateAccountError,
    InvalidInputError,
)
from merkle_distributor.schemas import (
    MAX_UINT256,
    ClaimRecord,
    DistributionArtifact,
    Entitlement,
    to_hex_quantity,
)

logger = logging.getLogger(__name__)

_DECIMAL_RE = re.compile(r"-?[0-9]+")
_HEX_RE = re.compile(r"-?0[xX][0-9a-fA-F]+")


def parse_amount(raw: object) -> int:
    """Parse an amount given as an int, a decimal string or a 0x hex string.

    Raises:
        InvalidInputError: if the amount is negative, a float or malformed text.
        AmountOverflowError: if the amount does not fit in a uint256.
    """
    if isinstance(raw, bool):
        raise InvalidInputError(f"Invalid amount: {raw!r}")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        text = raw.strip()
        if _DECIMAL_RE.fullmatch(text):
            value = int(text, 10)
        elif _HEX_RE.fullmatch(text):
            value = int(text, 16)
        else:
            raise InvalidInputError(f"Invalid amount: {raw!r}")
    elif isinstance(raw, float):
        raise InvalidInputError(f"Amount must be an integer or a string, not a float: {raw!r}")
    else:
        raise InvalidInputError(f"Invalid amount type: {type(raw).__name__}")

    if value < 0:
        raise InvalidInputError(f"Amount must not be negative: {raw!r}")
    if value > MAX_UINT256:
        raise AmountOverflowError(f"Amount {raw!r} does not fit in a uint256")
    return value


def normalize_account(raw: object) -> str:
    """Return the EIP-55 checksum form of an address, in any input casing."""
    if not isinstance(raw, str) or not is_address(raw.strip()):
        raise InvalidInputError(f"Found invalid address: {raw!r}")
    return to_checksum_address(raw.strip())


def _normalize_balances(raw_map: Mapping) -> dict[str, int]:
    balances: dict[str, int] = {}
    sources: dict[str, str] = {}
    for raw_account, raw_amount in raw_map.items():
        account = normalize_account(raw_account)
        if account in balances:
            raise DuplicateAccountError(account, sources[account], raw_account)
        try:
            balances[account] = parse_amount(raw_amount)
        except InvalidInputError as exc:
            raise InvalidInputError(f"Invalid amount for account {account}: {exc}") from exc
        sources[account] = raw_account
    return balances


def parse_balance_map(raw_map: object) -> DistributionArtifact:
    """Compile a balance map into a ``DistributionArtifact``.

    Steps:
        1. Normalise every address (duplicates after normalisation are rejected)
        2. Number accounts 0..N-1 in ascending address order
        3. Build the Merkle Tree over ``(index, account, amount)``
        4. Sum the amounts into the token total
        5. Extract one proof per account

    Raises:
        InvalidInputError: malformed map, address or amount.
        DuplicateAccountError: two keys name the same account.
        AmountOverflowError: an amount or the total exceeds a uint256.
        EmptyInputError: the map has no entries.
    """
    if not isinstance(raw_map, Mapping):
        raise InvalidInputError(
            f"Balance map must be a mapping, got {type(raw_map).__name__}"
        )
    if len(raw_map) > settings.max_balance_map_entries:
        raise InvalidInputError(
            f"Balance map has {len(raw_map)} entries, "
            f"limit is {settings.max_balance_map_entries}"
        )

    balances = _normalize_balances(raw_map)
    sorted_accounts = sorted(balances, key=to_canonical_address)

    entitlements = [
        Entitlement(index=i, account=account, amount=balances[account])
        for i, account in enumerate(sorted_accounts)
    ]
    tree = BalanceTree(entitlements)

    total = sum(balances.values())
    if total > MAX_UINT256:
        raise AmountOverflowError(f"Token total {total} does not fit in a uint256")

    claims = {
        e.account: ClaimRecord(
            index=e.index,
            amount=to_hex_quantity(e.amount),
            proof=tree.get_hex_proof(e.index, e.account, e.amount),
        )
        for e in entitlements
    }

    logger.info(
        "Compiled balance map: accounts=%d total=%d root=%s",
        len(claims),
        total,
        tree.hex_root[:18] + "...",
    )

    return DistributionArtifact(
        merkle_root=tree.hex_root,
        token_total=to_hex_quantity(total),
        claims=claims,
    )
