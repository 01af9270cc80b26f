"""The learner's credential ledger.

An ordered list of Credentials, at most one per id, mirrored into a single
durable slot as a JSON array.  Every successful insert or clear is flushed
to the slot before the call returns; a failed flush rolls the in-memory
change back and re-raises.

Loading never fails: a missing slot, invalid JSON, or any record that does
not parse yields an empty ledger.

Cross-view synchronization
--------------------------
The store subscribes to its slot.  When another view writes the slot, the
in-memory snapshot is replaced with the written value as a whole.  There is
no merge, so two views inserting different credentials at the same moment
can race and the later write wins, dropping the other credential.  This is
a known limitation of the slot-level last-writer-wins model.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable

from entangledu.core.config import LEDGER_SLOT
from entangledu.core.errors import DuplicateId
from entangledu.core.metrics import LEDGER_SYNC_OVERWRITES
from entangledu.client.slot_store import SlotStore, Unsubscribe
from entangledu.models.certificate import LessonId
from entangledu.models.credential import Credential

logger = logging.getLogger(__name__)

Snapshot = tuple[Credential, ...]
ChangeListener = Callable[[Snapshot], None]


def decode_ledger(raw: str | None) -> list[Credential]:
    """Parse a slot value; anything unusable becomes an empty ledger."""
    if raw is None:
        return []
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Ledger slot is not valid JSON; starting empty")
        return []
    if data is None:
        return []
    if not isinstance(data, list):
        logger.warning("Ledger slot is not a JSON array; starting empty")
        return []

    credentials: list[Credential] = []
    seen: set[LessonId] = set()
    try:
        for item in data:
            credential = Credential.from_json(item)
            if credential.id in seen:
                raise ValueError(f"duplicate credential id {credential.id!r}")
            seen.add(credential.id)
            credentials.append(credential)
    except ValueError as exc:
        logger.warning("Ledger slot is corrupt (%s); starting empty", exc)
        return []
    return credentials


def encode_ledger(credentials: list[Credential] | Snapshot) -> str:
    return json.dumps([c.to_json() for c in credentials])


class LedgerStore:
    def __init__(
        self,
        slots: SlotStore,
        key: str = LEDGER_SLOT,
        *,
        view_id: str | None = None,
    ) -> None:
        self._slots = slots
        self._key = key
        self.view_id = view_id or uuid.uuid4().hex
        self._credentials: list[Credential] = []
        self._ids: set[LessonId] = set()
        self._listeners: list[ChangeListener] = []
        self._unsubscribe: Unsubscribe | None = None

    @classmethod
    async def open(
        cls,
        slots: SlotStore,
        key: str = LEDGER_SLOT,
        *,
        view_id: str | None = None,
    ) -> LedgerStore:
        """Start following external writes, then load the persisted ledger.

        A write landing between the two steps is either in the loaded value
        or delivered to the subscription afterwards.
        """
        store = cls(slots, key, view_id=view_id)
        store._unsubscribe = await slots.subscribe(key, store._on_external_change)
        try:
            await store.load()
        except Exception:
            store.close()
            raise
        return store

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def load(self) -> Snapshot:
        self._replace(decode_ledger(await self._slots.get(self._key)))
        return self.snapshot()

    # -- reads ---------------------------------------------------------------

    def snapshot(self) -> Snapshot:
        return tuple(self._credentials)

    def contains(self, credential_id: LessonId) -> bool:
        return credential_id in self._ids

    def get(self, credential_id: LessonId) -> Credential | None:
        if credential_id not in self._ids:
            return None
        return next(c for c in self._credentials if c.id == credential_id)

    def __len__(self) -> int:
        return len(self._credentials)

    # -- writes --------------------------------------------------------------

    async def insert(self, credential: Credential) -> None:
        if credential.id in self._ids:
            logger.error(
                "Refusing duplicate credential id=%s", credential.id,
                extra={"lesson_id": credential.id},
            )
            raise DuplicateId(f"credential {credential.id!r} already in ledger")

        previous = list(self._credentials)
        self._credentials.append(credential)
        self._ids.add(credential.id)
        try:
            await self._flush()
        except Exception:
            self._replace(previous)
            raise
        self._emit()

    async def clear(self) -> None:
        previous = list(self._credentials)
        self._replace([])
        try:
            await self._slots.set(self._key, encode_ledger([]), origin=self.view_id)
        except Exception:
            self._replace(previous)
            raise
        logger.info("Ledger cleared (%d credentials removed)", len(previous))
        self._emit()

    # -- change notification -------------------------------------------------

    def on_change(self, listener: ChangeListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _on_external_change(self, value: str | None, origin: str) -> None:
        if origin == self.view_id:
            return
        self._replace(decode_ledger(value))
        LEDGER_SYNC_OVERWRITES.inc()
        logger.info(
            "Ledger replaced by external write from view=%s (%d credentials)",
            origin,
            len(self._credentials),
        )
        self._emit()

    def _replace(self, credentials: list[Credential]) -> None:
        self._credentials = list(credentials)
        self._ids = {c.id for c in credentials}

    async def _flush(self) -> None:
        await self._slots.set(self._key, encode_ledger(self._credentials), origin=self.view_id)

    def _emit(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
