"""Example: compile a balance map and pay every recipient out programmatically.

This example shows how to use the distributor as a library rather than
running it as an HTTP service. Useful for testing, dry runs of a
distribution, or driving claims from a custom batch job.

Usage:
    python examples/programmatic_distribution.py balances.json
"""

from __future__ import annotations

import json
import sys

from merkle_distributor import (
    AlreadyClaimedError,
    InMemoryToken,
    MerkleDistributor,
    parse_balance_map,
)

DISTRIBUTOR = "0x000000000000000000000000000000000000d15b"


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python examples/programmatic_distribution.py <balances.json>")
        sys.exit(1)

    with open(sys.argv[1], encoding="utf-8") as fp:
        balances = json.load(fp)

    # Step 1: Compile the balance map into a root and per-account proofs
    artifact = parse_balance_map(balances)
    print("=" * 60)
    print(f"Merkle root: {artifact.merkle_root}")
    print(f"Token total: {artifact.total} ({artifact.token_total})")
    print(f"Recipients:  {len(artifact.claims)}")
    print("=" * 60)

    # Step 2: Fund the distributor with exactly the token total
    token = InMemoryToken()
    token.set_balance(DISTRIBUTOR, artifact.total)
    distributor = MerkleDistributor(token, artifact.merkle_root, address=DISTRIBUTOR)

    # Step 3: Every recipient claims once; a second attempt must be refused
    for i, (account, claim) in enumerate(artifact.claims.items()):
        if not i % 50:
            print(f"Distribution in progress, {i} / {len(artifact.claims)}...")

        distributor.claim(claim.index, account, claim.amount_value, claim.proof)
        assert token.balance_of(account) == claim.amount_value

        try:
            distributor.claim(claim.index, account, claim.amount_value, claim.proof)
        except AlreadyClaimedError:
            pass
        else:
            raise SystemExit(f"Index {claim.index} was paid twice")

    assert token.balance_of(DISTRIBUTOR) == 0
    print("Distribution was successful!")


if __name__ == "__main__":
    main()
