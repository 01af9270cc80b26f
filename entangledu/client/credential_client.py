"""Turns "lesson passed" events into ledger credentials.

``request_credential`` never lets a network problem reach the caller:

  1. Lesson already in the ledger      → return it, no network call.
  2. A request for it already in flight → await that same request.
  3. Issuer signs                       → VERIFIED_PROOF (issuer timestamp).
  4. Issuer refuses                     → nothing stored, notice emitted,
                                          MintDenied raised (retry allowed).
  5. Issuer unreachable / garbage       → UNVERIFIED_LOCAL (client clock).

Steps 1 and 2 run before the first ``await``, so on a single event loop two
back-to-back completions of one lesson can never issue two mint calls.

Proof checking
--------------
With ``issuer_public_key`` set, each certificate's digest and signature are
checked before it is stored; a certificate that fails is handled like a
malformed response (step 5).  Without it, certificates are trusted as
received.  A certificate for a different lesson than the one requested is
always treated as malformed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric import ec

from entangledu.core.config import PROTOCOL_TAG
from entangledu.core.errors import MintDenied, TransportFailure
from entangledu.core.metrics import CREDENTIAL_REQUESTS
from entangledu.client.issuer_client import IssuerClient
from entangledu.client.ledger import LedgerStore
from entangledu.client.request_state import RequestState, RequestTracker
from entangledu.models.certificate import Certificate, LessonId
from entangledu.models.credential import Credential
from entangledu.services.issuer_service import Clock, now_millis
from entangledu.services.signing import verify_proof

logger = logging.getLogger(__name__)

ANONYMOUS_RECIPIENT = "anonymous"


@dataclass(frozen=True, slots=True)
class Notice:
    """User-facing message about a refused mint."""

    lesson_id: LessonId
    message: str


class CredentialClient:
    def __init__(
        self,
        ledger: LedgerStore,
        issuer: IssuerClient,
        *,
        clock: Clock = now_millis,
        tracker: RequestTracker | None = None,
        issuer_public_key: ec.EllipticCurvePublicKey | str | None = None,
        protocol_tag: str = PROTOCOL_TAG,
        on_notice: Callable[[Notice], None] | None = None,
    ) -> None:
        self._ledger = ledger
        self._issuer = issuer
        self._clock = clock
        self.tracker = tracker or RequestTracker()
        self._issuer_public_key = issuer_public_key
        self._protocol_tag = protocol_tag
        self._on_notice = on_notice
        self._in_flight: dict[LessonId, asyncio.Task[Credential]] = {}
        self.notices: list[Notice] = []

    @property
    def in_flight(self) -> bool:
        return self.tracker.in_flight

    async def request_credential(
        self,
        lesson_id: LessonId,
        lesson_title: str,
        recipient: str | None = None,
    ) -> Credential:
        existing = self._ledger.get(lesson_id)
        if existing is not None:
            CREDENTIAL_REQUESTS.labels(outcome="cached").inc()
            return existing

        pending = self._in_flight.get(lesson_id)
        if pending is not None:
            logger.debug("Joining in-flight request for lesson=%s", lesson_id)
            return await pending

        self.tracker.advance(lesson_id, RequestState.PENDING)
        task = asyncio.get_running_loop().create_task(
            self._mint(lesson_id, lesson_title, recipient or ANONYMOUS_RECIPIENT)
        )
        self._in_flight[lesson_id] = task
        try:
            return await task
        finally:
            self._in_flight.pop(lesson_id, None)
            if self.tracker.is_pending(lesson_id):
                # Failed outside the mapped outcomes (e.g. the ledger flush).
                self.tracker.abandon(lesson_id)

    async def _mint(
        self,
        lesson_id: LessonId,
        lesson_title: str,
        recipient: str,
    ) -> Credential:
        try:
            certificate = await self._issuer.mint(recipient, lesson_id, lesson_title)
            self._check(certificate, lesson_id)
        except MintDenied as exc:
            self._deny(lesson_id, exc)
            raise
        except TransportFailure as exc:
            return await self._store_offline(lesson_id, lesson_title, exc)

        credential = Credential.verified(certificate)
        stored = await self._store(credential)
        self.tracker.advance(lesson_id, RequestState.VERIFIED)
        CREDENTIAL_REQUESTS.labels(outcome="verified").inc()
        logger.info(
            "Verified credential stored for lesson=%s", lesson_id,
            extra={"lesson_id": lesson_id, "outcome": "verified"},
        )
        return stored

    def _check(self, certificate: Certificate, lesson_id: LessonId) -> None:
        if certificate.lesson_id != lesson_id:
            raise TransportFailure(
                f"certificate is for lesson {certificate.lesson_id!r}, not {lesson_id!r}"
            )
        if self._issuer_public_key is None:
            return
        if not verify_proof(
            self._issuer_public_key,
            title=certificate.title,
            timestamp=certificate.timestamp,
            hash=certificate.hash,
            signature=certificate.signature,
            protocol_tag=self._protocol_tag,
        ):
            raise TransportFailure("certificate failed signature verification")

    def _deny(self, lesson_id: LessonId, exc: MintDenied) -> None:
        self.tracker.advance(lesson_id, RequestState.DENIED)
        CREDENTIAL_REQUESTS.labels(outcome="denied").inc()
        logger.warning(
            "Mint denied for lesson=%s: %s", lesson_id, exc.message,
            extra={"lesson_id": lesson_id, "outcome": "denied"},
        )
        notice = Notice(lesson_id=lesson_id, message=f"Mint denied: {exc.message}")
        self.notices.append(notice)
        if self._on_notice is not None:
            self._on_notice(notice)

    async def _store_offline(
        self,
        lesson_id: LessonId,
        lesson_title: str,
        exc: TransportFailure,
    ) -> Credential:
        credential = Credential.unverified(
            lesson_id=lesson_id,
            title=lesson_title,
            timestamp=self._clock(),
        )
        stored = await self._store(credential)
        self.tracker.advance(lesson_id, RequestState.OFFLINE)
        CREDENTIAL_REQUESTS.labels(outcome="offline").inc()
        logger.warning(
            "Issuer unavailable (%s); stored unverified credential for lesson=%s",
            exc.message,
            lesson_id,
            extra={"lesson_id": lesson_id, "outcome": "offline"},
        )
        return stored

    async def _store(self, credential: Credential) -> Credential:
        # Another view may have written this lesson while the mint was in flight.
        existing = self._ledger.get(credential.id)
        if existing is not None:
            logger.info("Lesson=%s arrived from another view; keeping it", credential.id)
            return existing
        await self._ledger.insert(credential)
        return credential
