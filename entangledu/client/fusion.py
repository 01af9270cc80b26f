"""Fusing two lesson credentials into a derived FUSION credential.

Selection works like the inventory UI:

    Unselected ─toggle(a)─▶ Selected(a) ─toggle(b)─▶ Selected(a, b) ─fuse─▶ Unselected

Toggling a selected id removes it; toggling a third id while two are
selected does nothing.  Only lesson credentials already in the ledger can
be selected or fused; FUSION credentials cannot.  Fusion never touches the
parents.
"""

from __future__ import annotations

import logging

from entangledu.core.errors import InvalidSelection
from entangledu.client.curriculum import CURRICULUM, Curriculum
from entangledu.client.ledger import LedgerStore
from entangledu.models.certificate import LessonId
from entangledu.models.credential import Credential, CredentialKind
from entangledu.services.issuer_service import Clock, now_millis

logger = logging.getLogger(__name__)

MAX_SELECTION = 2


class FusionIdSequence:
    """Monotonic ``f-<n>`` ids: ``n`` tracks the clock but always grows."""

    def __init__(self, clock: Clock = now_millis) -> None:
        self._clock = clock
        self._last = 0

    def next(self) -> str:
        self._last = max(self._last + 1, self._clock())
        return f"f-{self._last}"


# One sequence per process so ids never repeat across engines.
FUSION_IDS = FusionIdSequence()


class FusionSelection:
    def __init__(self) -> None:
        self._selected: list[LessonId] = []

    @property
    def selected(self) -> tuple[LessonId, ...]:
        return tuple(self._selected)

    @property
    def ready(self) -> bool:
        return len(self._selected) == MAX_SELECTION

    def toggle(self, credential_id: LessonId) -> tuple[LessonId, ...]:
        if credential_id in self._selected:
            self._selected.remove(credential_id)
        elif len(self._selected) < MAX_SELECTION:
            self._selected.append(credential_id)
        return self.selected

    def clear(self) -> None:
        self._selected.clear()


class FusionEngine:
    def __init__(
        self,
        ledger: LedgerStore,
        curriculum: Curriculum = CURRICULUM,
        *,
        clock: Clock = now_millis,
        ids: FusionIdSequence | None = None,
    ) -> None:
        self._ledger = ledger
        self._curriculum = curriculum
        self._clock = clock
        self._ids = ids or FUSION_IDS
        self.selection = FusionSelection()

    def is_eligible(self, credential_id: LessonId) -> bool:
        credential = self._ledger.get(credential_id)
        return credential is not None and credential.kind is not CredentialKind.FUSION

    def toggle(self, credential_id: LessonId) -> tuple[LessonId, ...]:
        """Select or deselect a credential; ineligible ids leave the selection as is."""
        if credential_id not in self.selection.selected and not self.is_eligible(
            credential_id
        ):
            return self.selection.selected
        return self.selection.toggle(credential_id)

    def title_for(self, a: Credential, b: Credential) -> str:
        return f"Synthesis: {self._type_tag(a)} + {self._type_tag(b)}"

    def _type_tag(self, credential: Credential) -> str:
        lesson = self._curriculum.get(credential.id)
        return lesson.type_tag if lesson is not None else credential.title

    def _parents(self, credential_ids: tuple[LessonId, ...]) -> tuple[Credential, Credential]:
        if len(credential_ids) != MAX_SELECTION:
            raise InvalidSelection(
                f"fusion needs exactly two credentials (got {len(credential_ids)})"
            )
        id_a, id_b = credential_ids
        if id_a == id_b:
            raise InvalidSelection("fusion needs two distinct credentials")

        parents = []
        for cid in (id_a, id_b):
            credential = self._ledger.get(cid)
            if credential is None:
                raise InvalidSelection(f"credential {cid!r} is not in the ledger")
            if credential.kind is CredentialKind.FUSION:
                raise InvalidSelection(f"credential {cid!r} is already a fusion")
            parents.append(credential)
        return parents[0], parents[1]

    def _next_id(self) -> str:
        fusion_id = self._ids.next()
        while self._ledger.contains(fusion_id) or self._curriculum.get(fusion_id):
            fusion_id = self._ids.next()
        return fusion_id

    async def fuse(self, *credential_ids: LessonId) -> Credential:
        """Create and store a FUSION credential from two eligible parents.

        Raises InvalidSelection unless exactly two distinct, eligible ids in
        the ledger are given.
        """
        parent_a, parent_b = self._parents(credential_ids)
        credential = Credential.fused(
            id=self._next_id(),
            title=self.title_for(parent_a, parent_b),
            source_ids=(parent_a.id, parent_b.id),
            timestamp=self._clock(),
        )
        await self._ledger.insert(credential)
        self.selection.clear()
        logger.info(
            "Fused %s + %s into %s", parent_a.id, parent_b.id, credential.id,
        )
        return credential

    async def fuse_selected(self) -> Credential:
        return await self.fuse(*self.selection.selected)
