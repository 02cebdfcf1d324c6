"""Tests for the hash-level sorted-pair Merkle Tree."""

from __future__ import annotations

import pytest
from eth_utils import keccak

from merkle_distributor.exceptions import EmptyInputError, IndexOutOfRangeError
from merkle_distributor.merkle import (
    MerkleTree,
    build_layers,
    combine,
    generate_proof,
    verify_proof,
)


def _leaf(i: int) -> bytes:
    return keccak(f"leaf-{i}".encode())


# ---------------------------------------------------------------------------
# Node combination
# ---------------------------------------------------------------------------


class TestCombine:
    def test_is_commutative(self):
        for i in range(10):
            a, b = _leaf(i), _leaf(i + 100)
            assert combine(a, b) == combine(b, a)

    def test_sorts_before_hashing(self):
        low = b"\x00" * 31 + b"\x01"
        high = b"\xff" * 32
        assert combine(high, low) == keccak(low + high)

    def test_uses_unsigned_byte_order(self):
        # 0x80... must sort after 0x7f..., i.e. bytes compare unsigned
        a = b"\x80" + b"\x00" * 31
        b = b"\x7f" + b"\xff" * 31
        assert combine(a, b) == keccak(b + a)

    def test_equal_inputs(self):
        a = _leaf(1)
        assert combine(a, a) == keccak(a + a)

    def test_is_keccak_not_sha3(self):
        import hashlib

        a, b = _leaf(1), _leaf(2)
        pair = min(a, b) + max(a, b)
        assert combine(a, b) != hashlib.sha3_256(pair).digest()


# ---------------------------------------------------------------------------
# Layer construction
# ---------------------------------------------------------------------------


class TestBuildLayers:
    def test_empty_raises(self):
        with pytest.raises(EmptyInputError):
            build_layers([])

    def test_single_leaf_is_root(self):
        layers = build_layers([_leaf(0)])
        assert layers == [[_leaf(0)]]

    def test_two_leaves(self):
        layers = build_layers([_leaf(0), _leaf(1)])
        assert layers[-1] == [combine(_leaf(0), _leaf(1))]

    def test_odd_node_promoted_unhashed(self):
        h0, h1, h2 = _leaf(0), _leaf(1), _leaf(2)
        layers = build_layers([h0, h1, h2])
        assert layers[1] == [combine(h0, h1), h2]
        assert layers[2] == [combine(combine(h0, h1), h2)]

    def test_five_leaves_shape(self):
        layers = build_layers([_leaf(i) for i in range(5)])
        assert [len(level) for level in layers] == [5, 3, 2, 1]

    def test_deterministic(self):
        leaves = [_leaf(i) for i in range(13)]
        assert build_layers(leaves) == build_layers(list(leaves))

    def test_leaf_order_matters(self):
        leaves = [_leaf(i) for i in range(3)]
        assert build_layers(leaves)[-1] != build_layers(leaves[::-1])[-1]


# ---------------------------------------------------------------------------
# Proof generation and verification
# ---------------------------------------------------------------------------


class TestProofs:
    def test_single_leaf_has_empty_proof(self):
        tree = MerkleTree([_leaf(0)])
        assert tree.get_proof(0) == []
        assert MerkleTree.verify_proof(_leaf(0), [], tree.root)

    def test_two_leaves(self):
        tree = MerkleTree([_leaf(0), _leaf(1)])
        assert tree.get_proof(0) == [_leaf(1)]
        assert tree.get_proof(1) == [_leaf(0)]

    def test_promoted_leaf_skips_level(self):
        h0, h1, h2 = _leaf(0), _leaf(1), _leaf(2)
        tree = MerkleTree([h0, h1, h2])
        assert tree.get_proof(0) == [h1, h2]
        assert tree.get_proof(1) == [h0, h2]
        assert tree.get_proof(2) == [combine(h0, h1)]

    @pytest.mark.parametrize("size", [1, 2, 3, 4, 5, 7, 8, 9, 16, 17, 33])
    def test_all_proofs_valid(self, size):
        leaves = [_leaf(i) for i in range(size)]
        tree = MerkleTree(leaves)
        for i, leaf in enumerate(leaves):
            assert verify_proof(leaf, tree.get_proof(i), tree.root), f"leaf {i}"

    def test_proof_rejected_for_other_leaf(self):
        leaves = [_leaf(i) for i in range(6)]
        tree = MerkleTree(leaves)
        assert not verify_proof(leaves[1], tree.get_proof(0), tree.root)

    def test_proof_rejected_with_wrong_root(self):
        tree = MerkleTree([_leaf(0), _leaf(1)])
        assert not verify_proof(_leaf(0), tree.get_proof(0), b"\x00" * 32)

    def test_truncated_proof_rejected(self):
        leaves = [_leaf(i) for i in range(8)]
        tree = MerkleTree(leaves)
        assert not verify_proof(leaves[3], tree.get_proof(3)[:-1], tree.root)

    def test_out_of_range_raises(self):
        layers = build_layers([_leaf(0), _leaf(1)])
        with pytest.raises(IndexOutOfRangeError):
            generate_proof(layers, 2)
        with pytest.raises(IndexError):
            generate_proof(layers, -1)


# ---------------------------------------------------------------------------
# MerkleTree wrapper
# ---------------------------------------------------------------------------


class TestMerkleTree:
    def test_empty_tree_rejected(self):
        with pytest.raises(EmptyInputError):
            MerkleTree([])

    def test_rejects_non_hash_leaves(self):
        with pytest.raises(ValueError, match="32-byte"):
            MerkleTree([b"short"])

    def test_properties(self):
        leaves = [_leaf(i) for i in range(4)]
        tree = MerkleTree(leaves)
        assert tree.size == 4
        assert tree.hex_root == "0x" + tree.root.hex()
        assert tree.layers[0] == leaves
        assert tree.leaf(2) == leaves[2]

    def test_layers_are_copies(self):
        tree = MerkleTree([_leaf(0), _leaf(1)])
        tree.layers[0].clear()
        assert tree.size == 2

    def test_hex_proof(self):
        tree = MerkleTree([_leaf(0), _leaf(1)])
        assert tree.get_hex_proof(0) == ["0x" + _leaf(1).hex()]

    def test_hash_node_is_combine(self):
        assert MerkleTree.hash_node(_leaf(0), _leaf(1)) == combine(_leaf(1), _leaf(0))
