"""HTTP service exposing a Merkle distributor to recipients.

Recipients look up their claim record, submit claims, and check whether an
index has been paid out. The service holds one distributor; it is installed
with ``configure()`` or, at startup, built from the compiled artifact named
by ``MERKLE_DISTRIBUTOR_ARTIFACT``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from starlette.middleware.base import BaseHTTPMiddleware

from merkle_distributor import __version__
from merkle_distributor.balance_map import normalize_account, parse_amount
from merkle_distributor.config import settings
from merkle_distributor.distributor import MerkleDistributor
from merkle_distributor.exceptions import (
    AlreadyClaimedError,
    InputError,
    InvalidProofError,
    NotInitializedError,
    TransferFailedError,
)
from merkle_distributor.schemas import (
    SCHEMA_VERSION,
    DistributionArtifact,
    export_json_schemas,
)
from merkle_distributor.token_ledger import HttpTokenLedger, InMemoryToken, TokenLedger

logger = logging.getLogger(__name__)

MAX_REQUEST_BODY_BYTES = 1 * 1024 * 1024  # 1 MiB; a claim is a few KiB at most


class _BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose body exceeds MAX_REQUEST_BODY_BYTES."""

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and int(content_length) > MAX_REQUEST_BODY_BYTES:
            return JSONResponse(
                status_code=413,
                content={"detail": "Request body too large"},
            )
        return await call_next(request)


_distributor: MerkleDistributor | None = None
_artifact: DistributionArtifact | None = None


def configure(
    distributor: MerkleDistributor | None,
    artifact: DistributionArtifact | None = None,
) -> None:
    """Install the distributor (and optionally its artifact) served by the app."""
    global _distributor, _artifact
    _distributor = distributor
    _artifact = artifact


def load_artifact(path: str | Path) -> DistributionArtifact:
    return DistributionArtifact.model_validate_json(Path(path).read_text())


def _build_token_ledger() -> TokenLedger:
    if settings.token_url:
        return HttpTokenLedger()
    logger.warning("No MERKLE_DISTRIBUTOR_TOKEN_URL configured; using in-memory ledger")
    return InMemoryToken()


@asynccontextmanager
async def _lifespan(_app: FastAPI) -> AsyncIterator[None]:
    if _distributor is None and settings.artifact_path:
        artifact = load_artifact(settings.artifact_path)
        distributor = MerkleDistributor(_build_token_ledger(), artifact.merkle_root)
        configure(distributor, artifact)
        logger.info(
            "Loaded distribution from %s (%d claims, total %d)",
            settings.artifact_path,
            len(artifact.claims),
            artifact.total,
        )
    yield


app = FastAPI(
    title="Merkle Distributor",
    description="Self-serve token claims against a committed Merkle root",
    version=__version__,
    lifespan=_lifespan,
)

app.add_middleware(_BodySizeLimitMiddleware)


def _require_distributor() -> MerkleDistributor:
    if _distributor is None:
        raise HTTPException(status_code=503, detail="No distribution configured")
    return _distributor


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": "merkle-distributor",
        "version": __version__,
        "initialized": _distributor is not None and _distributor.initialized,
    }


@app.get("/distribution")
def distribution_status():
    """Return the committed root and who pays the claims out."""
    distributor = _require_distributor()
    return {
        "merkle_root": distributor.hex_root,
        "token_address": distributor.token.address,
        "distributor_address": distributor.address,
        "claimed_count": distributor.claimed_count,
    }


@app.get("/claims/{index}")
def claim_status(index: int):
    distributor = _require_distributor()
    return {"index": index, "claimed": distributor.is_claimed(index)}


@app.get("/proofs/{account}")
def get_claim_record(account: str):
    """Return the claim record (index, amount, proof) for *account*."""
    _require_distributor()
    if _artifact is None:
        raise HTTPException(status_code=503, detail="No distribution artifact loaded")
    try:
        normalized = normalize_account(account)
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record = _artifact.claims.get(normalized)
    if record is None:
        raise HTTPException(status_code=404, detail="No entitlement for account")
    return {"account": normalized, **record.model_dump(mode="json")}


class ClaimRequest(BaseModel):
    """Request body for the claim endpoint."""

    index: int = Field(..., ge=0)
    account: str
    amount: int
    proof: list[str] = Field(default_factory=list)

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value):
        try:
            return parse_amount(value)
        except InputError as exc:
            raise ValueError(str(exc)) from exc


@app.post("/claim")
def submit_claim(req: ClaimRequest):
    """Verify the proof and pay the entitlement out.

    Replays return 409, bad proofs 400, and a refused transfer 502 (the
    claim was rolled back and may be retried).
    """
    distributor = _require_distributor()
    try:
        event = distributor.claim(req.index, req.account, req.amount, req.proof)
    except NotInitializedError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except AlreadyClaimedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except InvalidProofError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except TransferFailedError as exc:
        logger.error("Claim for index %d rolled back: %s", req.index, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return event.model_dump(mode="json")


@app.get("/events")
def list_events(limit: int = 20, offset: int = 0):
    """List claimed events, oldest first."""
    distributor = _require_distributor()
    events = distributor.events
    return {
        "events": [e.model_dump(mode="json") for e in events[offset : offset + limit]],
        "total": len(events),
    }


@app.get("/schemas")
def list_schemas():
    """Return versioned JSON Schema definitions for the distribution models."""
    return {
        "schema_version": SCHEMA_VERSION,
        "schemas": export_json_schemas(),
    }
