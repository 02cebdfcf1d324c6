"""Configuration for the Merkle distributor service.

All settings are driven by environment variables with sensible defaults.
The compiler itself needs none of them; they only shape the HTTP service,
the token ledger it talks to, and ingestion limits.
"""

from __future__ import annotations

import os


def _get_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return int(val)


def _get_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return float(val)


def _get_bool(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return val.strip().lower() in {"1", "true", "yes", "y", "on"}


class DistributorSettings:
    # --- Distribution ---
    # Account the distributor holds its pool under on the token ledger.
    distributor_address: str = os.getenv(
        "MERKLE_DISTRIBUTOR_ADDRESS", "0x000000000000000000000000000000000000d15b"
    )
    # Compiled artifact (output of `merkle-distributor compile`) served by the API.
    artifact_path: str = os.getenv("MERKLE_DISTRIBUTOR_ARTIFACT", "")

    # --- Token ledger ---
    # When empty, an in-memory ledger is used (development only).
    token_url: str = os.getenv("MERKLE_DISTRIBUTOR_TOKEN_URL", "")
    token_api_key: str = os.getenv("MERKLE_DISTRIBUTOR_TOKEN_API_KEY", "")
    token_timeout_seconds: float = _get_float("MERKLE_DISTRIBUTOR_TOKEN_TIMEOUT", 10.0)

    # --- HTTP service ---
    host: str = os.getenv("MERKLE_DISTRIBUTOR_HOST", "127.0.0.1")
    port: int = _get_int("MERKLE_DISTRIBUTOR_PORT", 3200)

    # --- Ingestion limits ---
    # Maximum number of accounts accepted by the balance-map compiler.
    max_balance_map_entries: int = _get_int("MERKLE_DISTRIBUTOR_MAX_ENTRIES", 5_000_000)

    # If True, every successful claim is logged at INFO.
    log_claims: bool = _get_bool("MERKLE_DISTRIBUTOR_LOG_CLAIMS", True)


settings = DistributorSettings()
