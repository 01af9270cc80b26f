"""Error taxonomy for the issuer and the credential client.

Issuer-side errors carry the HTTP status they map to; the API layer renders
every ``EntangleduError`` as ``{"error": message}``.
"""

from __future__ import annotations

from typing import Any


class EntangleduError(Exception):
    """Base class for every error raised by this package."""

    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(EntangleduError):
    """Required configuration is missing or malformed (startup fault)."""


class InvalidRequest(EntangleduError):
    """A mint request is missing a required field."""

    status_code = 400


class SigningFailed(EntangleduError):
    """The issuer could not sign a payload digest."""

    status_code = 500


class TransportFailure(EntangleduError):
    """The issuer was unreachable, timed out, or answered with garbage."""


class MintDenied(EntangleduError):
    """The issuer answered but declined to mint.  Safe to retry."""


class DuplicateId(EntangleduError):
    """A credential id is already present in the ledger."""


class InvalidSelection(EntangleduError):
    """Fusion needs exactly two distinct, eligible credentials in the ledger."""
