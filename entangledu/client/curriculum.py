"""Lesson catalog and the pass checks behind each "lesson passed" event.

Each lesson carries a short type tag (``AdS/CFT``, ``QM``, ``Chaos``) used
to title fused credentials, and a check that decides whether a learner's
answer passes:

  1 Holographic Principle: multiple choice; entropy scales with surface
                           area (option index 1).
  2 Quantum Tunneling:     particle energy within 5 eV of 45 eV, just
                           under the 50 eV barrier.
  3 Lorenz Attractor:      Rayleigh number rho within 2 of 28.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from entangledu.models.certificate import LessonId

Check = Callable[[object], bool]


def choice(correct_index: int) -> Check:
    def check(answer: object) -> bool:
        return isinstance(answer, int) and not isinstance(answer, bool) and answer == correct_index

    return check


def within(target: float, tolerance: float) -> Check:
    def check(answer: object) -> bool:
        if isinstance(answer, bool) or not isinstance(answer, (int, float)):
            return False
        return abs(answer - target) <= tolerance

    return check


@dataclass(frozen=True, slots=True)
class Lesson:
    id: LessonId
    title: str
    type_tag: str
    check: Check = field(repr=False, compare=False)
    prompt: str = ""

    def passes(self, answer: object) -> bool:
        return self.check(answer)


LESSONS: tuple[Lesson, ...] = (
    Lesson(
        id=1,
        title="Holographic Principle",
        type_tag="AdS/CFT",
        check=choice(1),
        prompt="According to the Bekenstein bound, entropy scales with: "
        "0 Volume, 1 Surface Area, 2 Mass, 3 Temperature",
    ),
    Lesson(
        id=2,
        title="Quantum Tunneling",
        type_tag="QM",
        check=within(45, 5),
        prompt="Tune the particle energy (eV) to maximize transmission "
        "through a 50 eV barrier",
    ),
    Lesson(
        id=3,
        title="Lorenz Attractor",
        type_tag="Chaos",
        check=within(28, 2),
        prompt="Find the standard Rayleigh number (rho) for the Lorenz attractor",
    ),
)


class Curriculum:
    def __init__(self, lessons: tuple[Lesson, ...] | list[Lesson] = LESSONS) -> None:
        self._by_id: dict[LessonId, Lesson] = {}
        for lesson in lessons:
            if lesson.id in self._by_id:
                raise ValueError(f"duplicate lesson id {lesson.id!r}")
            self._by_id[lesson.id] = lesson

    def __iter__(self) -> Iterator[Lesson]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, lesson_id: LessonId) -> Lesson | None:
        return self._by_id.get(lesson_id)

    def require(self, lesson_id: LessonId) -> Lesson:
        lesson = self._by_id.get(lesson_id)
        if lesson is None:
            raise KeyError(f"unknown lesson {lesson_id!r}")
        return lesson

    def evaluate(self, lesson_id: LessonId, answer: object) -> bool:
        return self.require(lesson_id).passes(answer)


CURRICULUM = Curriculum()
