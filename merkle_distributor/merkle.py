"""Keccak-256 sorted-pair Merkle Tree for token distributions.

Specification (for third-party verifiers)
==========================================

**Hash algorithm:** Keccak-256 (the Ethereum variant, not NIST SHA3-256).

**Node combination:** ``H(min(a, b) || max(a, b))`` where ``min``/``max``
compare the two 32-byte hashes as unsigned big-endian byte strings. Sibling
order is therefore irrelevant, and proofs carry no left/right flags. This is
the scheme verified by OpenZeppelin's ``MerkleProof.verify``.

**Tree structure:** Unbalanced binary Merkle Tree. When a level holds an odd
number of nodes, the last node is promoted to the next level unhashed and
contributes no sibling to proofs passing through it. Nodes are never
duplicated to fill a level; doing so would change every root.

**Immutability:** A tree is built once from its leaves and never changes.
There is no append operation.
"""

from __future__ import annotations

from collections.abc import Sequence

from eth_utils import keccak

from merkle_distributor.exceptions import EmptyInputError, IndexOutOfRangeError

HASH_SIZE = 32


def combine(a: bytes, b: bytes) -> bytes:
    """Hash two sibling nodes into their parent, independent of order."""
    if a <= b:
        return keccak(a + b)
    return keccak(b + a)


def build_layers(leaves: Sequence[bytes]) -> list[list[bytes]]:
    """Build every layer of the tree, leaves first, root last.

    Raises:
        EmptyInputError: if *leaves* is empty.
    """
    if not leaves:
        raise EmptyInputError("Cannot build a Merkle Tree with no leaves")

    layers = [list(leaves)]
    level = layers[0]
    while len(level) > 1:
        next_level: list[bytes] = []
        for i in range(0, len(level), 2):
            if i + 1 < len(level):
                next_level.append(combine(level[i], level[i + 1]))
            else:
                next_level.append(level[i])
        layers.append(next_level)
        level = next_level
    return layers


def generate_proof(layers: Sequence[Sequence[bytes]], leaf_index: int) -> list[bytes]:
    """Collect the sibling hashes from the leaf at *leaf_index* up to the root.

    A node promoted without a sibling adds nothing at that level, mirroring
    ``build_layers``.

    Raises:
        IndexOutOfRangeError: if *leaf_index* is not a leaf of the tree.
    """
    n = len(layers[0]) if layers else 0
    if leaf_index < 0 or leaf_index >= n:
        raise IndexOutOfRangeError(f"leaf index {leaf_index} out of range [0, {n})")

    proof: list[bytes] = []
    idx = leaf_index
    for level in layers[:-1]:
        sibling = idx + 1 if idx % 2 == 0 else idx - 1
        if sibling < len(level):
            proof.append(level[sibling])
        idx //= 2
    return proof


def verify_proof(leaf_hash: bytes, proof: Sequence[bytes], root: bytes) -> bool:
    """Return True only if folding *proof* over *leaf_hash* reproduces *root*."""
    current = leaf_hash
    for sibling in proof:
        current = combine(current, sibling)
    return current == root


class MerkleTree:
    """Immutable sorted-pair Merkle Tree over pre-hashed leaves.

    Verification by third parties requires only the leaf hash, the proof
    from ``get_proof`` and the published root; use the static
    ``verify_proof`` method, no tree instance is needed.
    """

    hash_node = staticmethod(combine)
    verify_proof = staticmethod(verify_proof)

    def __init__(self, leaves: Sequence[bytes]) -> None:
        for leaf in leaves:
            if len(leaf) != HASH_SIZE:
                raise ValueError(f"Expected {HASH_SIZE}-byte leaf hash, got {len(leaf)} bytes")
        self._layers = build_layers(leaves)

    @property
    def size(self) -> int:
        return len(self._layers[0])

    @property
    def root(self) -> bytes:
        return self._layers[-1][0]

    @property
    def hex_root(self) -> str:
        return "0x" + self.root.hex()

    @property
    def layers(self) -> list[list[bytes]]:
        return [list(level) for level in self._layers]

    def leaf(self, leaf_index: int) -> bytes:
        if leaf_index < 0 or leaf_index >= self.size:
            raise IndexOutOfRangeError(
                f"leaf index {leaf_index} out of range [0, {self.size})"
            )
        return self._layers[0][leaf_index]

    def get_proof(self, leaf_index: int) -> list[bytes]:
        """Generate the inclusion proof for the leaf at *leaf_index*."""
        return generate_proof(self._layers, leaf_index)

    def get_hex_proof(self, leaf_index: int) -> list[str]:
        return ["0x" + node.hex() for node in self.get_proof(leaf_index)]
