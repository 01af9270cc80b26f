"""GET /api/certificates: read-only audit view of the mint log.

Returns every certificate in issuance order so a third party can recompute
each digest and check each signature against the key published on
/api/issuer.
"""

from __future__ import annotations

from fastapi import APIRouter

from entangledu.api.dependencies import Issuer
from entangledu.api.schemas import AuditOut, CertificateOut

router = APIRouter(prefix="/api", tags=["audit"])


@router.get("/certificates", response_model=AuditOut, response_model_by_alias=True)
def list_certificates(issuer: Issuer) -> AuditOut:
    view = issuer.audit()
    return AuditOut(
        total=view.total,
        certificates=[CertificateOut.model_validate(c.to_json()) for c in view.certificates],
    )
