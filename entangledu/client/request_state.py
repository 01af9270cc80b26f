"""Per-lesson lifecycle of a credential request, independent of any UI.

    IDLE ──begin──▶ PENDING ──▶ VERIFIED   (issuer signed it)
                           ├──▶ DENIED     (issuer refused; may retry)
                           └──▶ OFFLINE    (issuer unreachable; local record)

Any settled state may go back to PENDING (a retry after a denial, or a new
request after the ledger was cleared).  ``transition`` is pure; the tracker
holds the current state per lesson and tells observers about each move.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum

from entangledu.models.certificate import LessonId


class RequestState(StrEnum):
    IDLE = "idle"
    PENDING = "pending"
    VERIFIED = "verified"
    DENIED = "denied"
    OFFLINE = "offline"


_SETTLED = frozenset({RequestState.VERIFIED, RequestState.DENIED, RequestState.OFFLINE})

_ALLOWED: dict[RequestState, frozenset[RequestState]] = {
    RequestState.IDLE: frozenset({RequestState.PENDING}),
    RequestState.PENDING: _SETTLED,
    RequestState.VERIFIED: frozenset({RequestState.PENDING}),
    RequestState.DENIED: frozenset({RequestState.PENDING}),
    RequestState.OFFLINE: frozenset({RequestState.PENDING}),
}


class InvalidTransition(ValueError):
    pass


def transition(current: RequestState, target: RequestState) -> RequestState:
    if target not in _ALLOWED[current]:
        raise InvalidTransition(f"{current} → {target} is not allowed")
    return target


StateListener = Callable[[LessonId, RequestState], None]


class RequestTracker:
    def __init__(self) -> None:
        self._states: dict[LessonId, RequestState] = {}
        self._listeners: list[StateListener] = []

    def state(self, lesson_id: LessonId) -> RequestState:
        return self._states.get(lesson_id, RequestState.IDLE)

    def is_pending(self, lesson_id: LessonId) -> bool:
        return self.state(lesson_id) is RequestState.PENDING

    @property
    def in_flight(self) -> bool:
        return any(s is RequestState.PENDING for s in self._states.values())

    def advance(self, lesson_id: LessonId, target: RequestState) -> RequestState:
        new_state = transition(self.state(lesson_id), target)
        self._states[lesson_id] = new_state
        for listener in list(self._listeners):
            listener(lesson_id, new_state)
        return new_state

    def abandon(self, lesson_id: LessonId) -> None:
        """Drop a request that failed without reaching a settled state."""
        if self._states.pop(lesson_id, None) is not None:
            for listener in list(self._listeners):
                listener(lesson_id, RequestState.IDLE)

    def reset(self) -> None:
        """Forget settled lessons; pending ones keep their state."""
        self._states = {
            k: v for k, v in self._states.items() if v is RequestState.PENDING
        }

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)
