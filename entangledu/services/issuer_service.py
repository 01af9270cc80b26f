"""Mint orchestration: validate, encode, hash, sign, append, return.

The service owns no global state.  The signer, the mint log and the clock
are handed in at construction so each app instance (and each test) gets its
own isolated audit trail.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from entangledu.core.config import PROTOCOL_TAG
from entangledu.core.errors import InvalidRequest, SigningFailed
from entangledu.core.metrics import MINT_LOG_SIZE, MINTS
from entangledu.models.certificate import Certificate, LessonId, MintRequest
from entangledu.repos.mint_log import MintLog
from entangledu.services.payload_codec import payload_digest, to_hex
from entangledu.services.signing import IssuerSigner

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class AuditView:
    total: int
    certificates: list[Certificate]


@dataclass(frozen=True, slots=True)
class HealthView:
    status: str
    signer: str
    mints: int


def _blank(value: object) -> bool:
    if value is None or isinstance(value, bool):
        return True
    if isinstance(value, str):
        return not value.strip()
    return not isinstance(value, int)


class IssuerService:
    def __init__(
        self,
        signer: IssuerSigner,
        mint_log: MintLog,
        *,
        protocol_tag: str = PROTOCOL_TAG,
        clock: Clock = now_millis,
    ) -> None:
        self._signer = signer
        self._log = mint_log
        self._protocol_tag = protocol_tag
        self._clock = clock

    @property
    def signer_address(self) -> str:
        return self._signer.address

    @property
    def public_key_hex(self) -> str:
        return self._signer.public_key_hex

    @property
    def protocol_tag(self) -> str:
        return self._protocol_tag

    def mint(
        self,
        recipient: str | None,
        lesson_id: LessonId | None,
        lesson_title: str | None,
    ) -> Certificate:
        """Sign a completion certificate and append it to the mint log.

        No idempotency: two calls for the same lesson produce two entries.
        Raises InvalidRequest (missing fields) or SigningFailed; neither
        touches the log.
        """
        if _blank(recipient) or _blank(lesson_id):
            MINTS.labels(result="invalid").inc()
            logger.warning(
                "Rejected mint with missing fields",
                extra={"recipient": recipient, "lesson_id": lesson_id},
            )
            raise InvalidRequest("Missing required fields: to, lessonId")

        request = MintRequest(
            recipient=recipient.strip(),  # type: ignore[union-attr]
            lesson_id=lesson_id,  # type: ignore[arg-type]
            lesson_title=lesson_title or "",
        )

        issued_at = self._clock()
        digest = payload_digest(request.lesson_title, self._protocol_tag, issued_at)

        try:
            signature = self._signer.sign_digest(digest)
        except Exception as exc:
            MINTS.labels(result="signing_failed").inc()
            logger.exception(
                "Signing failed for lesson=%s", request.lesson_id,
                extra={"lesson_id": request.lesson_id},
            )
            raise SigningFailed("Failed to sign certificate") from exc

        certificate = Certificate.new(
            request=request,
            signature=to_hex(signature),
            hash=to_hex(digest),
            timestamp=issued_at,
        )
        self._log.append(certificate)

        MINTS.labels(result="issued").inc()
        MINT_LOG_SIZE.set(len(self._log))
        logger.info(
            "Minted certificate=%s lesson=%s recipient=%s",
            certificate.id,
            certificate.lesson_id,
            certificate.recipient,
            extra={
                "lesson_id": certificate.lesson_id,
                "recipient": certificate.recipient,
                "mint_count": len(self._log),
            },
        )
        return certificate

    def audit(self) -> AuditView:
        certificates = self._log.list_all()
        return AuditView(total=len(certificates), certificates=certificates)

    def health(self) -> HealthView:
        return HealthView(status="ok", signer=self._signer.address, mints=len(self._log))
