"""Demo: pass lessons, lose the issuer, fuse two credentials.

Runs the issuer app in-process with a throwaway key, so no server or
ISSUER_PRIVATE_KEY is needed.

Run with:
    python scripts/demo_credential_flow.py
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import httpx

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from entangledu.client.issuer_client import IssuerClient  # noqa: E402
from entangledu.client.ledger import LedgerStore  # noqa: E402
from entangledu.client.session import open_session  # noqa: E402
from entangledu.client.slot_store import InMemorySlotStore  # noqa: E402
from entangledu.core.config import SETTINGS  # noqa: E402
from entangledu.core.errors import MintDenied  # noqa: E402
from entangledu.main import create_app  # noqa: E402
from entangledu.services.signing import IssuerSigner, verify_proof  # noqa: E402

WALLET = "0xDEMO"


class _Outage(httpx.AsyncBaseTransport):
    def __init__(self, upstream: httpx.AsyncBaseTransport) -> None:
        self._upstream = upstream
        self.down = False

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if self.down:
            raise httpx.ConnectError("issuer unplugged", request=request)
        return await self._upstream.handle_async_request(request)


async def main() -> None:
    signer = IssuerSigner.generate()
    app = create_app(SETTINGS, signer=signer)
    transport = _Outage(httpx.ASGITransport(app=app))
    slots = InMemorySlotStore()

    issuer = IssuerClient("http://issuer.local", timeout=5.0, transport=transport)
    session = await open_session(SETTINGS, slots=slots, issuer=issuer)
    try:
        # ── Step 1: identity ────────────────────────────────────────────
        identity = await issuer.issuer_identity()
        print(f"1. issuer signer            → {identity['signer']}")

        # ── Step 2: wrong answer, then a pass ───────────────────────────
        await session.wallet.connect(WALLET)
        wrong = await session.submit(1, 0)
        print(f"2. lesson 1, answer 0       → {wrong}")
        first = await session.submit(1, 1)
        assert first is not None
        ok = verify_proof(
            signer.public_key,
            title=first.title,
            timestamp=first.timestamp,
            hash=first.hash or "",
            signature=first.signature or "",
        )
        print(f"3. lesson 1, answer 1       → {first.kind}  (proof valid: {ok})")

        # ── Step 3: repeat is served from the ledger ────────────────────
        await session.submit(1, 1)
        health = await issuer.health()
        print(f"4. lesson 1 again           → mints on issuer: {health['mints']}")

        # ── Step 4: denial (blank recipient is refused by the issuer) ──
        try:
            await session.credentials.request_credential(3, "Lorenz Attractor", " ")
        except MintDenied as exc:
            print(f"5. blank recipient          → denied: {exc.message}")

        # ── Step 5: issuer goes away ────────────────────────────────────
        transport.down = True
        offline = await session.submit(2, 45)
        assert offline is not None
        print(f"6. lesson 2 while offline   → {offline.kind}")

        # ── Step 6: fuse ────────────────────────────────────────────────
        session.fusion.toggle(1)
        session.fusion.toggle(2)
        fused = await session.fusion.fuse_selected()
        print(f"7. fuse 1 + 2               → {fused.id}  {fused.title!r}")

        # ── Step 7: another view sees the same ledger ───────────────────
        other = await LedgerStore.open(slots)
        print(f"8. second view              → {[c.id for c in other.snapshot()]}")
        other.close()
    finally:
        await session.aclose()

    print("\nDone.")


if __name__ == "__main__":
    asyncio.run(main())
