"""Tests for leaf encoding, entitlement trees and entitlement-level verification."""

from __future__ import annotations

import pytest
from eth_utils import keccak, to_canonical_address, to_checksum_address

from merkle_distributor.balance_tree import BalanceTree, encode_leaf, verify_proof
from merkle_distributor.exceptions import (
    EmptyInputError,
    EncodingError,
    IndexOutOfRangeError,
    InvalidInputError,
)
from merkle_distributor.schemas import MAX_UINT256, Entitlement

USER1 = "0x1111111111111111111111111111111111111111"
USER2 = "0x2222222222222222222222222222222222222222"
USER3 = "0x3333333333333333333333333333333333333333"


@pytest.fixture
def three_user_tree():
    return BalanceTree.from_balances([(USER1, 5000), (USER2, 10000), (USER3, 100)])


# ---------------------------------------------------------------------------
# Leaf encoding
# ---------------------------------------------------------------------------


class TestEncodeLeaf:
    def test_matches_abi_encode_packed(self):
        expected = keccak(
            (7).to_bytes(32, "big") + to_canonical_address(USER1) + (5000).to_bytes(32, "big")
        )
        assert encode_leaf(7, USER1, 5000) == expected

    def test_accepts_raw_and_checksum_addresses(self):
        raw = to_canonical_address(USER2)
        checksum = to_checksum_address(USER2)
        assert encode_leaf(1, raw, 10) == encode_leaf(1, checksum, 10) == encode_leaf(1, USER2, 10)

    def test_field_boundaries_are_fixed(self):
        # Shifting value between index and amount must change the leaf
        assert encode_leaf(1, USER1, 256) != encode_leaf(256, USER1, 1)

    def test_max_amount(self):
        assert len(encode_leaf(0, USER1, MAX_UINT256)) == 32

    def test_amount_overflow_raises(self):
        with pytest.raises(EncodingError, match="uint256"):
            encode_leaf(0, USER1, MAX_UINT256 + 1)

    def test_negative_values_raise(self):
        with pytest.raises(EncodingError):
            encode_leaf(-1, USER1, 1)
        with pytest.raises(EncodingError):
            encode_leaf(0, USER1, -1)

    def test_non_integer_amount_raises(self):
        with pytest.raises(EncodingError):
            encode_leaf(0, USER1, "5000")
        with pytest.raises(EncodingError):
            encode_leaf(0, USER1, True)

    def test_wrong_width_account_raises(self):
        with pytest.raises(EncodingError, match="20 bytes"):
            encode_leaf(0, b"\x11" * 19, 1)
        with pytest.raises(EncodingError):
            encode_leaf(0, "0x1234", 1)
        with pytest.raises(EncodingError):
            encode_leaf(0, None, 1)

    def test_encoding_error_is_value_error(self):
        with pytest.raises(ValueError):
            encode_leaf(0, "not-an-address", 1)


# ---------------------------------------------------------------------------
# BalanceTree
# ---------------------------------------------------------------------------


class TestBalanceTree:
    def test_empty_rejected(self):
        with pytest.raises(EmptyInputError):
            BalanceTree([])

    def test_index_must_match_position(self):
        with pytest.raises(InvalidInputError, match="position 0"):
            BalanceTree([Entitlement(index=1, account=USER1, amount=1)])

    def test_from_balances_assigns_positions(self, three_user_tree):
        assert [e.index for e in three_user_tree.entitlements] == [0, 1, 2]
        assert three_user_tree.entitlements[1].account == to_checksum_address(USER2)
        assert three_user_tree.size == 3

    def test_root_is_deterministic(self, three_user_tree):
        again = BalanceTree.from_balances([(USER1, 5000), (USER2, 10000), (USER3, 100)])
        assert again.root == three_user_tree.root
        assert again.hex_root == three_user_tree.hex_root

    def test_proof_shape_with_promotion(self, three_user_tree):
        assert len(three_user_tree.get_proof(0, USER1, 5000)) == 2
        assert len(three_user_tree.get_proof(1, USER2, 10000)) == 2
        assert len(three_user_tree.get_proof(2, USER3, 100)) == 1

    def test_all_proofs_verify(self, three_user_tree):
        for e in three_user_tree.entitlements:
            proof = three_user_tree.get_proof(e.index, e.account, e.amount)
            assert BalanceTree.verify_proof(
                e.index, e.account, e.amount, proof, three_user_tree.root
            )

    def test_hex_proofs_verify_against_hex_root(self, three_user_tree):
        proof = three_user_tree.get_hex_proof(0, USER1, 5000)
        assert all(p.startswith("0x") and len(p) == 66 for p in proof)
        assert verify_proof(0, USER1, 5000, proof, three_user_tree.hex_root)

    def test_get_proof_for_wrong_entitlement_raises(self, three_user_tree):
        with pytest.raises(InvalidInputError):
            three_user_tree.get_proof(0, USER1, 5001)
        with pytest.raises(InvalidInputError):
            three_user_tree.get_proof(0, USER2, 5000)

    def test_get_proof_out_of_range(self, three_user_tree):
        with pytest.raises(IndexOutOfRangeError):
            three_user_tree.get_proof(3, USER1, 5000)

    def test_layers_exposed(self, three_user_tree):
        layers = three_user_tree.layers
        assert len(layers[0]) == 3
        assert layers[-1] == [three_user_tree.root]


# ---------------------------------------------------------------------------
# Entitlement-level verification
# ---------------------------------------------------------------------------


class TestVerifyProof:
    @pytest.fixture
    def ten_user_tree(self):
        return BalanceTree.from_balances(
            [("0x" + f"{i + 1:02x}" * 20, i + 1) for i in range(10)]
        )

    def test_every_leaf_verifies(self, ten_user_tree):
        for e in ten_user_tree.entitlements:
            proof = ten_user_tree.get_proof(e.index, e.account, e.amount)
            assert verify_proof(e.index, e.account, e.amount, proof, ten_user_tree.root)

    def test_mutating_any_field_fails(self, ten_user_tree):
        e = ten_user_tree.entitlements[5]
        proof = ten_user_tree.get_proof(e.index, e.account, e.amount)
        root = ten_user_tree.root
        other = ten_user_tree.entitlements[6]
        assert not verify_proof(e.index + 1, e.account, e.amount, proof, root)
        assert not verify_proof(e.index, other.account, e.amount, proof, root)
        assert not verify_proof(e.index, e.account, e.amount + 1000, proof, root)

    def test_proof_of_other_account_fails(self, three_user_tree):
        proof0 = three_user_tree.get_proof(0, USER1, 5000)
        assert not verify_proof(1, USER2, 10000, proof0, three_user_tree.root)

    def test_empty_proof_fails(self, three_user_tree):
        assert not verify_proof(0, USER1, 5000, [], three_user_tree.root)

    def test_extra_sibling_fails(self, three_user_tree):
        proof = three_user_tree.get_proof(2, USER3, 100)
        assert not verify_proof(2, USER3, 100, proof + [b"\x00" * 32], three_user_tree.root)

    def test_malformed_inputs_return_false(self, three_user_tree):
        root = three_user_tree.root
        proof = three_user_tree.get_proof(0, USER1, 5000)
        assert verify_proof(0, USER1, 5000, ["0xzz"], root) is False
        assert verify_proof(0, USER1, 5000, [b"\x01" * 31], root) is False
        assert verify_proof(0, USER1, 5000, [42], root) is False
        assert verify_proof(0, USER1, 5000, None, root) is False
        assert verify_proof(0, USER1, 5000, proof, "0x1234") is False
        assert verify_proof(0, "bogus", 5000, proof, root) is False
        assert verify_proof(0, USER1, -5, proof, root) is False
        assert verify_proof(0, USER1, MAX_UINT256 + 1, proof, root) is False


# ---------------------------------------------------------------------------
# Realistic size tree
# ---------------------------------------------------------------------------


NUM_LEAVES = 100_000


@pytest.fixture(scope="module")
def large_tree():
    return BalanceTree.from_balances([(USER1, 5000)] * NUM_LEAVES)


class TestRealisticSizeTree:
    @pytest.mark.parametrize("index", [0, 50_000, 90_000, NUM_LEAVES - 1])
    def test_boundary_and_interior_leaves_verify(self, large_tree, index):
        proof = large_tree.get_proof(index, USER1, 5000)
        assert len(proof) <= 17
        assert verify_proof(index, USER1, 5000, proof, large_tree.root)

    def test_sampled_leaves_verify(self, large_tree):
        for index in range(0, NUM_LEAVES, NUM_LEAVES // 25):
            proof = large_tree.get_hex_proof(index, USER1, 5000)
            assert verify_proof(index, USER1, 5000, proof, large_tree.hex_root)

    def test_proof_bound_to_index(self, large_tree):
        proof = large_tree.get_proof(50_000, USER1, 5000)
        assert not verify_proof(50_001, USER1, 5000, proof, large_tree.root)
