"""Error taxonomy for the Merkle distributor.

Every failure raised by this package derives from ``DistributorError`` and
falls into one of four groups:

- ``InputError``: malformed, ambiguous or overflowing input to the
  balance-map compiler or the leaf encoder.
- ``StructuralError``: an operation asked for something the tree or the
  ledger cannot provide (empty entitlement set, out-of-range index,
  uninitialised or re-initialised distributor).
- ``AuthorizationError``: expected outcomes of ``claim`` (bad proof,
  replayed index). Ledger state is left untouched.
- ``TransferFailedError``: the token ledger refused the transfer. The claim
  is rolled back and may be retried with the same proof.
"""

from __future__ import annotations


class DistributorError(Exception):
    """Base class for all Merkle distributor errors."""


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------


class InputError(DistributorError):
    pass


class InvalidInputError(InputError):
    """The balance map or an entitlement is malformed."""


class DuplicateAccountError(InputError):
    """Two raw keys normalise to the same account."""

    def __init__(self, account: str, first_key: str, second_key: str) -> None:
        super().__init__(
            f"Duplicate account {account}: {first_key!r} and {second_key!r} "
            "normalise to the same address"
        )
        self.account = account
        self.keys = (first_key, second_key)


class AmountOverflowError(InputError, OverflowError):
    """An amount or the distribution total does not fit in a uint256."""


class EncodingError(InputError, ValueError):
    """An entitlement cannot be packed into a leaf."""


# ---------------------------------------------------------------------------
# Structural errors
# ---------------------------------------------------------------------------


class StructuralError(DistributorError):
    pass


class EmptyInputError(StructuralError):
    """A tree was requested over zero entitlements."""


class IndexOutOfRangeError(StructuralError, IndexError):
    """A leaf index does not exist in the tree."""


class NotInitializedError(StructuralError):
    """The distributor has no committed Merkle root yet."""


class AlreadyInitializedError(StructuralError):
    """The distributor's Merkle root has already been committed."""


# ---------------------------------------------------------------------------
# Authorization and transfer errors
# ---------------------------------------------------------------------------


class AuthorizationError(DistributorError):
    pass


class InvalidProofError(AuthorizationError):
    def __init__(self, index: int) -> None:
        super().__init__(f"Invalid proof for index {index}")
        self.index = index


class AlreadyClaimedError(AuthorizationError):
    def __init__(self, index: int) -> None:
        super().__init__(f"Drop already claimed for index {index}")
        self.index = index


class TransferFailedError(DistributorError):
    """The token ledger did not move the funds; the claim was rolled back."""

    def __init__(self, index: int, account: str, amount: int, reason: str = "") -> None:
        message = f"Transfer of {amount} to {account} for index {index} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.index = index
        self.account = account
        self.amount = amount
