"""Merkle Distributor: one-shot token claims against a committed Merkle root."""

__version__ = "0.1.0"

from merkle_distributor.balance_map import parse_balance_map
from merkle_distributor.balance_tree import BalanceTree, encode_leaf, verify_proof
from merkle_distributor.config import DistributorSettings, settings
from merkle_distributor.distributor import ClaimedBitMap, MerkleDistributor
from merkle_distributor.exceptions import (
    AlreadyClaimedError,
    AlreadyInitializedError,
    AmountOverflowError,
    AuthorizationError,
    DistributorError,
    DuplicateAccountError,
    EmptyInputError,
    EncodingError,
    IndexOutOfRangeError,
    InputError,
    InvalidInputError,
    InvalidProofError,
    NotInitializedError,
    StructuralError,
    TransferFailedError,
)
from merkle_distributor.merkle import MerkleTree, combine
from merkle_distributor.schemas import (
    ClaimedEvent,
    ClaimRecord,
    DistributionArtifact,
    Entitlement,
)
from merkle_distributor.token_ledger import HttpTokenLedger, InMemoryToken, TokenLedger

__all__ = [
    # Tree construction and proofs
    "encode_leaf",
    "combine",
    "verify_proof",
    "MerkleTree",
    "BalanceTree",
    "parse_balance_map",
    # Claim ledger
    "MerkleDistributor",
    "ClaimedBitMap",
    "TokenLedger",
    "InMemoryToken",
    "HttpTokenLedger",
    # Models
    "Entitlement",
    "ClaimRecord",
    "DistributionArtifact",
    "ClaimedEvent",
    # Config
    "settings",
    "DistributorSettings",
    # Errors
    "DistributorError",
    "InputError",
    "InvalidInputError",
    "DuplicateAccountError",
    "AmountOverflowError",
    "EncodingError",
    "StructuralError",
    "EmptyInputError",
    "IndexOutOfRangeError",
    "NotInitializedError",
    "AlreadyInitializedError",
    "AuthorizationError",
    "InvalidProofError",
    "AlreadyClaimedError",
    "TransferFailedError",
]
