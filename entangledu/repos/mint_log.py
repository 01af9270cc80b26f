from __future__ import annotations

from typing import Protocol

from entangledu.models.certificate import Certificate


class MintLog(Protocol):
    """Append-only record of every certificate the issuer has signed."""

    def append(self, certificate: Certificate) -> None: ...
    def list_all(self) -> list[Certificate]: ...
    def __len__(self) -> int: ...


class InMemoryMintLog:
    """Process-local mint log.  Entries are only ever appended."""

    def __init__(self) -> None:
        self._entries: list[Certificate] = []

    def append(self, certificate: Certificate) -> None:
        self._entries.append(certificate)

    def list_all(self) -> list[Certificate]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
