from __future__ import annotations

import json
import logging
import uuid

from entangledu.core.config import WALLET_SLOT
from entangledu.client.slot_store import SlotStore

logger = logging.getLogger(__name__)


class WalletSlot:
    """Opaque display identifier of the learner's wallet, kept in its own slot.

    Nothing is cached, so every open view reads the same value.  A slot that
    does not hold a JSON string reads as disconnected.
    """

    def __init__(
        self,
        slots: SlotStore,
        key: str = WALLET_SLOT,
        *,
        view_id: str | None = None,
    ) -> None:
        self._slots = slots
        self._key = key
        self.view_id = view_id or uuid.uuid4().hex

    async def current(self) -> str | None:
        raw = await self._slots.get(self._key)
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("Wallet slot is not valid JSON; treating as disconnected")
            return None
        return value if isinstance(value, str) and value else None

    async def connect(self, identifier: str) -> None:
        if not identifier or not identifier.strip():
            raise ValueError("wallet identifier must be non-empty")
        await self._slots.set(self._key, json.dumps(identifier.strip()), origin=self.view_id)
        logger.info("Wallet connected: %s", identifier.strip())

    async def disconnect(self) -> None:
        await self._slots.delete(self._key, origin=self.view_id)
        logger.info("Wallet disconnected")
