"""Puzzle challenge used for agent login.

A toy proof-of-agency: the server hands out a few mechanical puzzles and
issues a bearer token when all answers come back right.
"""

from __future__ import annotations

import random
import string
import uuid
from typing import Any

from agentfirst.schemas import ChallengeTask
from agentfirst.storage import PendingChallenge

DEFAULT_TASK_TYPES = ("reverse", "sort", "math", "pattern")


def _reverse_task(rng: random.Random) -> tuple[ChallengeTask, Any]:
    word = "".join(rng.choice(string.ascii_lowercase) for _ in range(rng.randint(5, 10)))
    return ChallengeTask(type="reverse", input=word), word[::-1]


def _sort_task(rng: random.Random) -> tuple[ChallengeTask, Any]:
    values = [rng.randint(-50, 50) for _ in range(rng.randint(4, 8))]
    return ChallengeTask(type="sort", input=values), sorted(values)


def _math_task(rng: random.Random) -> tuple[ChallengeTask, Any]:
    a, b, c = rng.randint(1, 20), rng.randint(1, 20), rng.randint(1, 9)
    expression = f"({a} + {b}) * {c}"
    return ChallengeTask(type="math", input=expression), (a + b) * c


def _pattern_task(rng: random.Random) -> tuple[ChallengeTask, Any]:
    start = rng.randint(1, 9)
    if rng.random() < 0.5:
        step = rng.randint(2, 7)
        sequence = [start + step * i for i in range(5)]
        return ChallengeTask(type="pattern", input=sequence), sequence[-1] + step
    ratio = rng.randint(2, 3)
    sequence = [start * ratio**i for i in range(5)]
    return ChallengeTask(type="pattern", input=sequence), sequence[-1] * ratio


_GENERATORS = {
    "reverse": _reverse_task,
    "sort": _sort_task,
    "math": _math_task,
    "pattern": _pattern_task,
}


def generate_challenge(
    name: str,
    task_types: tuple[str, ...] = DEFAULT_TASK_TYPES,
    rng: random.Random | None = None,
) -> tuple[list[ChallengeTask], PendingChallenge]:
    """Build the puzzles for ``name`` along with their expected answers."""
    rng = rng or random.Random()
    tasks = []
    expected = []
    for task_type in task_types:
        task, answer = _GENERATORS[task_type](rng)
        tasks.append(task)
        expected.append(answer)

    pending = PendingChallenge(
        challenge_id=f"chal_{uuid.uuid4().hex[:12]}",
        name=name,
        expected=expected,
    )
    return tasks, pending


def _answers_match(expected: Any, given: Any) -> bool:
    if isinstance(expected, (int, float)) and not isinstance(expected, bool):
        return isinstance(given, (int, float)) and not isinstance(given, bool) and float(given) == float(expected)
    return given == expected


def verify_solutions(challenge: PendingChallenge, solutions: list[Any]) -> bool:
    """Check submitted answers against a pending challenge."""
    if challenge.is_expired() or len(solutions) != len(challenge.expected):
        return False
    return all(_answers_match(exp, got) for exp, got in zip(challenge.expected, solutions))
