from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

LessonId = int | str


@dataclass(frozen=True, slots=True)
class MintRequest:
    recipient: str
    lesson_id: LessonId
    lesson_title: str


@dataclass(frozen=True, slots=True)
class Certificate:
    """Issuer-signed proof that ``recipient`` passed ``lesson_id``.

    ``hash`` is the hex Keccak digest of the encoded payload and
    ``signature`` the hex ``r || s`` over it; ``timestamp`` is the issuer's
    clock in epoch milliseconds.
    """

    id: str
    lesson_id: LessonId
    title: str
    recipient: str
    signature: str
    hash: str
    timestamp: int

    @staticmethod
    def new(
        *,
        request: MintRequest,
        signature: str,
        hash: str,
        timestamp: int,
    ) -> Certificate:
        return Certificate(
            id=str(uuid4()),
            lesson_id=request.lesson_id,
            title=request.lesson_title,
            recipient=request.recipient,
            signature=signature,
            hash=hash,
            timestamp=timestamp,
        )

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "lessonId": self.lesson_id,
            "title": self.title,
            "recipient": self.recipient,
            "signature": self.signature,
            "hash": self.hash,
            "timestamp": self.timestamp,
        }
