from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import entangledu` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from entangledu.client.issuer_client import IssuerClient  # noqa: E402
from entangledu.core.config import Settings  # noqa: E402
from entangledu.main import create_app  # noqa: E402
from entangledu.repos.mint_log import InMemoryMintLog  # noqa: E402
from entangledu.services.issuer_service import IssuerService  # noqa: E402
from entangledu.services.signing import IssuerSigner  # noqa: E402

# Fixed test key (secp256k1 scalar well inside the curve order).
TEST_PRIVATE_KEY = "0x" + "4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"

ISSUER_BASE_URL = "http://issuer.test"


class FixedClock:
    """Deterministic millisecond clock; each call advances by ``step``."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


def make_settings(**overrides) -> Settings:
    values = dict(
        app_env="test",
        log_level="info",
        log_json=False,
        port=4000,
        redis_url=None,
        issuer_private_key=TEST_PRIVATE_KEY,
        issuer_url=ISSUER_BASE_URL,
        mint_timeout_seconds=2.0,
    )
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def signer() -> IssuerSigner:
    return IssuerSigner.from_hex(TEST_PRIVATE_KEY)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def mint_log() -> InMemoryMintLog:
    return InMemoryMintLog()


@pytest.fixture
def issuer_service(
    signer: IssuerSigner, mint_log: InMemoryMintLog, clock: FixedClock
) -> IssuerService:
    return IssuerService(signer, mint_log, clock=clock)


@pytest.fixture
def app(
    settings: Settings,
    signer: IssuerSigner,
    mint_log: InMemoryMintLog,
    clock: FixedClock,
) -> FastAPI:
    return create_app(settings, signer=signer, mint_log=mint_log, clock=clock)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def issuer_client_for(app: FastAPI) -> IssuerClient:
    """IssuerClient that talks to ``app`` in-process."""
    return IssuerClient(
        ISSUER_BASE_URL,
        timeout=2.0,
        transport=httpx.ASGITransport(app=app),
    )


def unreachable_issuer() -> IssuerClient:
    """IssuerClient whose every request fails with a connection error."""

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return IssuerClient(
        ISSUER_BASE_URL,
        timeout=2.0,
        transport=httpx.MockTransport(refuse),
    )


def scripted_issuer(handler) -> IssuerClient:
    """IssuerClient answered by ``handler(request) -> httpx.Response``."""
    return IssuerClient(
        ISSUER_BASE_URL,
        timeout=2.0,
        transport=httpx.MockTransport(handler),
    )


class _FakePubSub:
    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self.messages: asyncio.Queue[dict] = asyncio.Queue()
        self.channels: set[str] = set()
        self.closed = False

    async def subscribe(self, channel: str) -> None:
        self.channels.add(channel)
        if self._redis.confirm_subscribe:
            self.messages.put_nowait({"type": "subscribe", "channel": channel, "data": 1})

    async def get_message(self, ignore_subscribe_messages: bool = False, timeout=0.0):
        try:
            return await asyncio.wait_for(self.messages.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def listen(self):
        while True:
            yield await self.messages.get()

    async def unsubscribe(self, channel: str) -> None:
        self.channels.discard(channel)

    async def aclose(self) -> None:
        self.closed = True


class FakeRedis:
    """Just enough of redis.asyncio.Redis for slot values and change notices.

    Publishes reach only pubsubs that are subscribed at that moment, as on a
    real server.  Set ``confirm_subscribe`` to False to model a server that
    never acknowledges SUBSCRIBE.
    """

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.published: list[tuple[str, str]] = []
        self.pubsubs: list[_FakePubSub] = []
        self.confirm_subscribe = True

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str) -> None:
        self.values[key] = value

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        receivers = [p for p in self.pubsubs if not p.closed and channel in p.channels]
        for pubsub in receivers:
            pubsub.messages.put_nowait({"type": "message", "channel": channel, "data": message})
        return len(receivers)

    def pubsub(self) -> _FakePubSub:
        pubsub = _FakePubSub(self)
        self.pubsubs.append(pubsub)
        return pubsub


async def settle() -> None:
    """Let background listener tasks drain what has been published so far."""
    for _ in range(5):
        await asyncio.sleep(0)
