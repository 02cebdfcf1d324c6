"""Merkle Tree over ``(index, account, amount)`` entitlements.

Leaves are ``keccak256(abi.encodePacked(uint256 index, address account,
uint256 amount))``: 32 + 20 + 32 bytes with fixed field boundaries, the
encoding a Solidity distributor recomputes on-chain. ``encode_leaf`` is the
only place this packing happens, so tree construction and verification
cannot diverge.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from eth_abi.packed import encode_packed
from eth_utils import decode_hex, is_address, keccak, to_canonical_address

from merkle_distributor import merkle
from merkle_distributor.exceptions import EncodingError, InvalidInputError
from merkle_distributor.merkle import HASH_SIZE, MerkleTree
from merkle_distributor.schemas import MAX_UINT256, Entitlement

ADDRESS_SIZE = 20

_LEAF_TYPES = ("uint256", "address", "uint256")


def _check_uint256(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > MAX_UINT256:
        raise EncodingError(f"{name} {value} does not fit in a uint256")
    return value


def _canonical_account(account: object) -> bytes:
    if isinstance(account, (bytes, bytearray)):
        if len(account) != ADDRESS_SIZE:
            raise EncodingError(
                f"account must be {ADDRESS_SIZE} bytes, got {len(account)} bytes"
            )
        return bytes(account)
    if isinstance(account, str) and is_address(account):
        return to_canonical_address(account)
    raise EncodingError(f"Invalid account: {account!r}")


def encode_leaf(index: int, account: str | bytes, amount: int) -> bytes:
    """Return the 32-byte leaf fingerprint of one entitlement.

    Raises:
        EncodingError: if *account* is not a 20-byte address or *index* /
            *amount* is not a uint256.
    """
    packed = encode_packed(
        _LEAF_TYPES,
        (
            _check_uint256("index", index),
            _canonical_account(account),
            _check_uint256("amount", amount),
        ),
    )
    return keccak(packed)


def _to_node(value: object) -> bytes:
    if isinstance(value, str):
        value = decode_hex(value)
    if not isinstance(value, (bytes, bytearray)):
        raise TypeError(f"Expected bytes or hex string, got {type(value).__name__}")
    if len(value) != HASH_SIZE:
        raise ValueError(f"Expected {HASH_SIZE}-byte hash, got {len(value)} bytes")
    return bytes(value)


def verify_proof(
    index: int,
    account: str | bytes,
    amount: int,
    proof: Sequence[bytes | str],
    root: bytes | str,
) -> bool:
    """Check that ``(index, account, amount)`` is a leaf under *root*.

    Never raises: malformed proofs, roots or entitlements verify as False.
    Proof elements and the root may be raw 32-byte values or 0x hex strings.
    """
    try:
        leaf = encode_leaf(index, account, amount)
        siblings = [_to_node(node) for node in proof]
        expected = _to_node(root)
    except (TypeError, ValueError):
        return False
    return merkle.verify_proof(leaf, siblings, expected)


class BalanceTree:
    """Merkle Tree whose leaf *i* is the entitlement with index *i*."""

    verify_proof = staticmethod(verify_proof)

    def __init__(self, entitlements: Sequence[Entitlement]) -> None:
        for position, entitlement in enumerate(entitlements):
            if entitlement.index != position:
                raise InvalidInputError(
                    f"Entitlement at position {position} has index {entitlement.index}"
                )
        self._entitlements = tuple(entitlements)
        self._tree = MerkleTree(
            [encode_leaf(e.index, e.account, e.amount) for e in self._entitlements]
        )

    @classmethod
    def from_balances(cls, balances: Iterable[tuple[str, int]]) -> BalanceTree:
        """Build a tree from ``(account, amount)`` pairs, indexed by position."""
        return cls(
            [
                Entitlement(index=i, account=account, amount=amount)
                for i, (account, amount) in enumerate(balances)
            ]
        )

    @property
    def size(self) -> int:
        return self._tree.size

    @property
    def root(self) -> bytes:
        return self._tree.root

    @property
    def hex_root(self) -> str:
        return self._tree.hex_root

    @property
    def layers(self) -> list[list[bytes]]:
        return self._tree.layers

    @property
    def entitlements(self) -> tuple[Entitlement, ...]:
        return self._entitlements

    def get_proof(self, index: int, account: str | bytes, amount: int) -> list[bytes]:
        """Generate the proof for the entitlement stored at *index*.

        Raises:
            IndexOutOfRangeError: if *index* is not a leaf of the tree.
            InvalidInputError: if *account* / *amount* differ from the
                entitlement stored at *index*.
        """
        leaf = self._tree.leaf(index)
        if encode_leaf(index, account, amount) != leaf:
            raise InvalidInputError(
                f"({account}, {amount}) is not the entitlement at index {index}"
            )
        return self._tree.get_proof(index)

    def get_hex_proof(self, index: int, account: str | bytes, amount: int) -> list[str]:
        return ["0x" + node.hex() for node in self.get_proof(index, account, amount)]
