from __future__ import annotations

import asyncio

import pytest
from fastapi import FastAPI

from entangledu.client.request_state import RequestState
from entangledu.client.session import LessonSession, open_session
from entangledu.client.slot_store import InMemorySlotStore
from entangledu.models.credential import CredentialKind
from tests.conftest import issuer_client_for, make_settings, unreachable_issuer


async def _session(app: FastAPI | None = None, slots=None) -> LessonSession:
    issuer = issuer_client_for(app) if app is not None else unreachable_issuer()
    return await open_session(
        make_settings(), slots=slots or InMemorySlotStore(), issuer=issuer
    )


def test_wrong_answer_requests_nothing(app: FastAPI) -> None:
    async def scenario():
        session = await _session(app)
        try:
            return await session.submit(1, 0), session.is_completed(1)
        finally:
            await session.aclose()

    assert asyncio.run(scenario()) == (None, False)


def test_passing_answer_uses_connected_wallet(app: FastAPI) -> None:
    async def scenario():
        session = await _session(app)
        try:
            await session.wallet.connect("0xABC")
            return await session.submit(1, 1)
        finally:
            await session.aclose()

    credential = asyncio.run(scenario())
    assert credential is not None
    assert credential.kind is CredentialKind.VERIFIED_PROOF
    assert credential.recipient == "0xABC"


def test_no_wallet_mints_for_anonymous(app: FastAPI) -> None:
    async def scenario():
        session = await _session(app)
        try:
            return await session.submit(2, 45)
        finally:
            await session.aclose()

    credential = asyncio.run(scenario())
    assert credential is not None
    assert credential.recipient == "anonymous"


def test_unknown_lesson_raises() -> None:
    async def scenario():
        session = await _session()
        try:
            await session.submit(42, 1)
        finally:
            await session.aclose()

    with pytest.raises(KeyError):
        asyncio.run(scenario())


def test_reset_clears_progress_and_state() -> None:
    async def scenario():
        session = await _session()
        try:
            await session.submit(2, 45)
            await session.submit(3, 28)
            session.fusion.toggle(2)
            await session.reset()
            return (
                len(session.ledger),
                session.credentials.tracker.state(2),
                session.fusion.selection.selected,
            )
        finally:
            await session.aclose()

    assert asyncio.run(scenario()) == (0, RequestState.IDLE, ())


def test_sessions_on_shared_slots_stay_in_sync(app: FastAPI) -> None:
    async def scenario():
        slots = InMemorySlotStore()
        tab_a = await _session(app, slots)
        tab_b = await _session(app, slots)
        try:
            await tab_a.submit(1, 1)
            return tab_b.is_completed(1), await tab_b.submit(1, 1)
        finally:
            await tab_a.aclose()
            await tab_b.aclose()

    completed, credential = asyncio.run(scenario())
    assert completed is True
    assert credential is not None
    assert credential.kind is CredentialKind.VERIFIED_PROOF
