"""HTTP client for the issuer service.

``mint`` turns every way a call can go wrong into one of two errors:

  MintDenied       : the issuer answered with a well-formed JSON object
                     that carries no certificate (``{"error": ...}`` or
                     ``success: false``), whatever the status code.
  TransportFailure : connection refused, timeout, non-JSON body, or a
                     success response whose certificate does not parse.
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError

from entangledu.api.schemas import CertificateOut
from entangledu.core.errors import MintDenied, TransportFailure
from entangledu.models.certificate import Certificate, LessonId


def parse_certificate(data: Any) -> Certificate:
    """Validate a certificate object from a mint response.  Raises ValueError."""
    wire = CertificateOut.model_validate(data)
    return Certificate(
        id=wire.id,
        lesson_id=wire.lesson_id,
        title=wire.title,
        recipient=wire.recipient,
        signature=wire.signature,
        hash=wire.hash,
        timestamp=wire.timestamp,
    )


class IssuerClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> IssuerClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransportFailure(f"issuer timed out on {path}") from exc
        except httpx.HTTPError as exc:
            raise TransportFailure(f"issuer unreachable: {exc}") from exc

    def _json_object(self, response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError as exc:
            raise TransportFailure(
                f"issuer sent a non-JSON response (status {response.status_code})"
            ) from exc
        if not isinstance(body, dict):
            raise TransportFailure("issuer response is not a JSON object")
        return body

    async def mint(
        self,
        recipient: str,
        lesson_id: LessonId,
        lesson_title: str,
    ) -> Certificate:
        response = await self._send(
            "POST",
            "/api/mint",
            json={"to": recipient, "lessonId": lesson_id, "lessonTitle": lesson_title},
        )
        body = self._json_object(response)

        if body.get("success") is True and "certificate" in body:
            try:
                return parse_certificate(body["certificate"])
            except ValidationError as exc:
                raise TransportFailure("issuer sent a malformed certificate") from exc

        if "error" in body or body.get("success") is False:
            reason = str(body.get("error") or "Mint denied")
            raise MintDenied(reason, details={"status_code": response.status_code})

        raise TransportFailure("issuer response has neither certificate nor error")

    async def health(self) -> dict:
        response = await self._send("GET", "/api/health")
        return self._json_object(response)

    async def issuer_identity(self) -> dict:
        """Signer address, public key and protocol tag from /api/issuer."""
        response = await self._send("GET", "/api/issuer")
        return self._json_object(response)

    async def certificates(self) -> list[Certificate]:
        response = await self._send("GET", "/api/certificates")
        body = self._json_object(response)
        try:
            return [parse_certificate(c) for c in body.get("certificates", [])]
        except ValidationError as exc:
            raise TransportFailure("issuer sent a malformed audit log") from exc
