"""Client-side composition for one open view of a learner.

``LessonSession`` is the seam the lesson UI talks to: it receives answers
(or plain "lesson passed" events), requests credentials with the connected
wallet as recipient, and exposes the ledger, the fusion engine and the
request tracker for rendering.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from entangledu.core.config import Settings
from entangledu.client.credential_client import CredentialClient
from entangledu.client.curriculum import CURRICULUM, Curriculum, Lesson
from entangledu.client.fusion import FusionEngine
from entangledu.client.issuer_client import IssuerClient
from entangledu.client.ledger import LedgerStore
from entangledu.client.slot_store import SlotStore, slot_store_from_settings
from entangledu.client.wallet import WalletSlot
from entangledu.models.certificate import LessonId
from entangledu.models.credential import Credential

logger = logging.getLogger(__name__)


@dataclass
class LessonSession:
    curriculum: Curriculum
    ledger: LedgerStore
    wallet: WalletSlot
    credentials: CredentialClient
    fusion: FusionEngine
    issuer: IssuerClient

    async def aclose(self) -> None:
        self.ledger.close()
        await self.issuer.aclose()

    async def reset(self) -> None:
        """Clear the ledger along with settled request states and the fusion selection."""
        await self.ledger.clear()
        self.credentials.tracker.reset()
        self.fusion.selection.clear()

    def is_completed(self, lesson_id: LessonId) -> bool:
        return self.ledger.contains(lesson_id)

    async def lesson_passed(self, lesson: Lesson) -> Credential:
        recipient = await self.wallet.current()
        return await self.credentials.request_credential(lesson.id, lesson.title, recipient)

    async def submit(self, lesson_id: LessonId, answer: object) -> Credential | None:
        """Check an answer; on a pass, request (or return) the lesson's credential.

        Raises KeyError for unknown lessons and MintDenied when the issuer
        refuses.  A wrong answer returns None.
        """
        lesson = self.curriculum.require(lesson_id)
        if not lesson.passes(answer):
            logger.debug("Answer for lesson=%s did not pass", lesson_id)
            return None
        return await self.lesson_passed(lesson)


async def open_session(
    settings: Settings,
    *,
    slots: SlotStore | None = None,
    issuer: IssuerClient | None = None,
    curriculum: Curriculum = CURRICULUM,
) -> LessonSession:
    """Build a session from settings.  Close it with ``aclose``."""
    slots = slots if slots is not None else slot_store_from_settings(settings)
    issuer = issuer or IssuerClient(
        settings.issuer_url, timeout=settings.mint_timeout_seconds
    )
    ledger = await LedgerStore.open(slots)
    return LessonSession(
        curriculum=curriculum,
        ledger=ledger,
        wallet=WalletSlot(slots, view_id=ledger.view_id),
        credentials=CredentialClient(ledger, issuer),
        fusion=FusionEngine(ledger, curriculum),
        issuer=issuer,
    )
