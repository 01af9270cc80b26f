"""POST /api/mint: sign a lesson-completion certificate.

Request:  {"to": "0xABC", "lessonId": 1, "lessonTitle": "Holographic Principle"}
Response: {"success": true, "certificate": {...}}

Missing ``to``/``lessonId`` → 400 {"error"}; signing failure → 500 {"error"}.
Both are raised as EntangleduError and rendered by the handler in main.py.
"""

from __future__ import annotations

from fastapi import APIRouter

from entangledu.api.dependencies import Issuer
from entangledu.api.schemas import CertificateOut, MintIn, MintOut

router = APIRouter(prefix="/api", tags=["mint"])


@router.post("/mint", response_model=MintOut, response_model_by_alias=True)
def mint(body: MintIn, issuer: Issuer) -> MintOut:
    certificate = issuer.mint(body.to, body.lesson_id, body.lesson_title)
    return MintOut(
        success=True,
        certificate=CertificateOut.model_validate(certificate.to_json()),
    )
