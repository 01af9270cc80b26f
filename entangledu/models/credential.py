from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from entangledu.models.certificate import Certificate, LessonId


class CredentialKind(StrEnum):
    KNOWLEDGE = "KNOWLEDGE"  # legacy, unsigned
    VERIFIED_PROOF = "VERIFIED_PROOF"
    UNVERIFIED_LOCAL = "UNVERIFIED_LOCAL"
    FUSION = "FUSION"


def _is_id(value: object) -> bool:
    return isinstance(value, (int, str)) and not isinstance(value, bool)


@dataclass(frozen=True, slots=True)
class Credential:
    """One ledger entry.  Immutable once created.

    ``hash``/``signature``/``recipient`` are only set on VERIFIED_PROOF;
    ``source_ids`` only on FUSION.
    """

    id: LessonId
    title: str
    kind: CredentialKind
    timestamp: int
    hash: str | None = None
    signature: str | None = None
    recipient: str | None = None
    source_ids: tuple[LessonId, LessonId] | None = None

    @staticmethod
    def verified(certificate: Certificate) -> Credential:
        return Credential(
            id=certificate.lesson_id,
            title=certificate.title,
            kind=CredentialKind.VERIFIED_PROOF,
            timestamp=certificate.timestamp,
            hash=certificate.hash,
            signature=certificate.signature,
            recipient=certificate.recipient,
        )

    @staticmethod
    def unverified(*, lesson_id: LessonId, title: str, timestamp: int) -> Credential:
        return Credential(
            id=lesson_id,
            title=title,
            kind=CredentialKind.UNVERIFIED_LOCAL,
            timestamp=timestamp,
        )

    @staticmethod
    def fused(
        *,
        id: str,
        title: str,
        source_ids: tuple[LessonId, LessonId],
        timestamp: int,
    ) -> Credential:
        return Credential(
            id=id,
            title=title,
            kind=CredentialKind.FUSION,
            timestamp=timestamp,
            source_ids=source_ids,
        )

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "kind": self.kind.value,
            "timestamp": self.timestamp,
        }
        if self.hash is not None:
            data["hash"] = self.hash
        if self.signature is not None:
            data["signature"] = self.signature
        if self.recipient is not None:
            data["recipient"] = self.recipient
        if self.source_ids is not None:
            data["sourceIds"] = list(self.source_ids)
        return data

    @staticmethod
    def from_json(data: Any) -> Credential:
        """Inverse of :meth:`to_json`.  Raises ValueError on malformed input.

        Records written by older clients use ``type`` instead of ``kind``.
        """
        if not isinstance(data, dict):
            raise ValueError("credential must be a JSON object")

        cid = data.get("id")
        if not _is_id(cid):
            raise ValueError(f"credential id must be int or str (got {cid!r})")

        title = data.get("title")
        if not isinstance(title, str):
            raise ValueError("credential title must be a string")

        try:
            kind = CredentialKind(data.get("kind", data.get("type")))
        except ValueError:
            raise ValueError(f"unknown credential kind in {data!r}") from None

        timestamp = data.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            raise ValueError("credential timestamp must be an integer")

        source_ids = data.get("sourceIds")
        if source_ids is not None:
            if (
                not isinstance(source_ids, list)
                or len(source_ids) != 2
                or not all(_is_id(sid) for sid in source_ids)
            ):
                raise ValueError("sourceIds must be a list of two ids")
            source_ids = (source_ids[0], source_ids[1])

        proof = {name: data.get(name) for name in ("hash", "signature", "recipient")}
        for name, value in proof.items():
            if value is not None and not isinstance(value, str):
                raise ValueError(f"credential {name} must be a string")
        if kind is CredentialKind.VERIFIED_PROOF and not (
            proof["hash"] and proof["signature"]
        ):
            raise ValueError(f"verified credential {cid!r} is missing its proof")

        return Credential(
            id=cid,
            title=title,
            kind=kind,
            timestamp=timestamp,
            source_ids=source_ids,
            **proof,
        )
