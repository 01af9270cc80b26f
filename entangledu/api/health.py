"""Diagnostic endpoints.

  /api/health: liveness plus the signer address and current mint count.
  /api/issuer: the public material a verifier needs: signer address,
              uncompressed public key, and the protocol tag baked into
              every payload.
  /metrics   : Prometheus text exposition of everything in core/metrics.py.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ConfigDict, Field

from entangledu.api.dependencies import Issuer

router = APIRouter(tags=["health"])


class HealthOut(BaseModel):
    status: str
    signer: str
    mints: int


class IssuerOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    signer: str
    public_key: str = Field(alias="publicKey")
    protocol: str


@router.get("/api/health", response_model=HealthOut)
def health(issuer: Issuer) -> HealthOut:
    view = issuer.health()
    return HealthOut(status=view.status, signer=view.signer, mints=view.mints)


@router.get("/api/issuer", response_model=IssuerOut, response_model_by_alias=True)
def issuer_identity(issuer: Issuer) -> IssuerOut:
    return IssuerOut(
        signer=issuer.signer_address,
        public_key=issuer.public_key_hex,
        protocol=issuer.protocol_tag,
    )


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
