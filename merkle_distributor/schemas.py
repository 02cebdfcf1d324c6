"""Pydantic models for entitlements, compiled distributions and claims.

The compiled artifact keeps the wire format of the original
``generate-merkle-root`` tooling (``merkleRoot``, ``tokenTotal`` and a
``claims`` map keyed by checksum address) so existing recipients' tooling
can read it. Use ``export_json_schemas()`` to publish versioned JSON Schema
definitions of every model.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, field_validator

SCHEMA_VERSION = "1.0"

MAX_UINT256 = 2**256 - 1


def to_hex_quantity(value: int) -> str:
    """Format a non-negative integer as even-length ``0x`` hex (``10 -> 0x0a``)."""
    digits = format(value, "x")
    if len(digits) % 2:
        digits = "0" + digits
    return "0x" + digits


# ---------------------------------------------------------------------------
# Entitlements
# ---------------------------------------------------------------------------


class Entitlement(BaseModel):
    """One recipient's amount and position in a distribution."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    account: str = Field(..., description="EIP-55 checksum address")
    amount: int = Field(..., ge=0, le=MAX_UINT256)

    @field_validator("account")
    @classmethod
    def _checksum_account(cls, value: str) -> str:
        if not is_address(value):
            raise ValueError(f"Invalid address: {value!r}")
        return to_checksum_address(value)


# ---------------------------------------------------------------------------
# Compiled distribution artifact
# ---------------------------------------------------------------------------


class ClaimRecord(BaseModel):
    """Everything one recipient needs to claim: index, amount and proof."""

    index: int = Field(..., ge=0)
    amount: str = Field(..., description="Even-length 0x hex quantity")
    proof: list[str] = Field(
        default_factory=list, description="0x-prefixed sibling hashes from leaf to root"
    )

    @property
    def amount_value(self) -> int:
        return int(self.amount, 16)


class DistributionArtifact(BaseModel):
    """Output of the balance-map compiler, handed to recipients and the distributor."""

    model_config = ConfigDict(populate_by_name=True)

    merkle_root: str = Field(..., alias="merkleRoot")
    token_total: str = Field(..., alias="tokenTotal")
    claims: dict[str, ClaimRecord]

    @property
    def total(self) -> int:
        return int(self.token_total, 16)

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.model_dump(mode="json", by_alias=True), indent=indent)


# ---------------------------------------------------------------------------
# Claim events
# ---------------------------------------------------------------------------


class ClaimedEvent(BaseModel):
    """Emitted once per successful claim."""

    index: int
    account: str
    amount: int
    merkle_root: str
    claimed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# JSON Schema export
# ---------------------------------------------------------------------------

_SCHEMA_MODELS: dict[str, type[BaseModel]] = {
    "Entitlement": Entitlement,
    "ClaimRecord": ClaimRecord,
    "DistributionArtifact": DistributionArtifact,
    "ClaimedEvent": ClaimedEvent,
}


def export_json_schemas(output_dir: str | Path | None = None) -> dict[str, dict]:
    """Generate versioned JSON Schema definitions for the distribution models.

    If *output_dir* is provided, each schema is also written to
    ``<output_dir>/<ModelName>.v<version>.schema.json``.
    """
    schemas: dict[str, dict] = {}
    for name, model_cls in _SCHEMA_MODELS.items():
        schema = model_cls.model_json_schema(by_alias=True)
        schema["$id"] = f"merkle-distributor/schemas/{name}/v{SCHEMA_VERSION}"
        schema["$schema"] = "https://json-schema.org/draft/2020-12/schema"
        schemas[name] = schema

    if output_dir is not None:
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        for name, schema in schemas.items():
            path = out / f"{name}.v{SCHEMA_VERSION}.schema.json"
            path.write_text(json.dumps(schema, indent=2) + "\n")

    return schemas
