"""Building a play session and suggesting what to play next.

A play session is seeded by ``"{exercise_id}:{attempt_key}"``. The same seed
always yields the same question order, so a submission can be graded against
exactly the questions the learner saw without storing them.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUESTIONS = 12
DEFAULT_TEST_QUESTIONS = 15
TEST_POOL_TYPES = frozenset({"quiz", "decision", "fill"})

QUESTION_LIMIT_KEYS = ("question_limit", "questions_limit", "max_questions", "maxQuestions", "limit_questions")
TEST_LIMIT_KEYS = ("test_question_limit", "test_questions_limit", "test_max_questions", "testMaxQuestions")

_UINT32 = 0xFFFFFFFF


# ---------------------------------------------------------------------------
# Deterministic shuffle (FNV-1a seed + mulberry32)
# ---------------------------------------------------------------------------


def _imul(a: int, b: int) -> int:
    return (a * b) & _UINT32


def hash_to_seed(value: Any) -> int:
    """32-bit FNV-1a over UTF-16 code units."""

    text = "" if value is None else str(value)
    data = text.encode("utf-16-le", errors="surrogatepass")
    h = 2166136261
    for offset in range(0, len(data), 2):
        code_unit = data[offset] | (data[offset + 1] << 8)
        h ^= code_unit
        h = _imul(h, 16777619)
    return h & _UINT32


def mulberry32(seed: int) -> Callable[[], float]:
    state = seed & _UINT32

    def _next() -> float:
        nonlocal state
        state = (state + 0x6D2B79F5) & _UINT32
        x = _imul(state ^ (state >> 15), 1 | state)
        x = (x ^ ((x + _imul(x ^ (x >> 7), 61 | x)) & _UINT32)) & _UINT32
        return ((x ^ (x >> 14)) & _UINT32) / 4294967296

    return _next


def shuffle_deterministic(items: Iterable[Any], seed: str) -> list[Any]:
    out = list(items)
    rand = mulberry32(hash_to_seed(seed))
    for i in range(len(out) - 1, 0, -1):
        j = math.floor(rand() * (i + 1))
        out[i], out[j] = out[j], out[i]
    return out


def session_seed(exercise_id: Any, attempt_key: Optional[str]) -> str:
    return f"{exercise_id}:{attempt_key or 'seed'}"


# ---------------------------------------------------------------------------
# Limits & difficulty
# ---------------------------------------------------------------------------


def _positive_int(raw: Any) -> Optional[int]:
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            # Number("") is 0 in the browser, which is not a valid limit.
            return None
        try:
            raw = float(raw)
        except ValueError:
            return None
    if isinstance(raw, (int, float)) and math.isfinite(raw) and raw > 0:
        return int(math.floor(raw))
    return None


def _first_present(exercise: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if exercise.get(key) is not None:
            return exercise[key]
    return None


def question_limit(exercise: Mapping[str, Any]) -> int:
    return _positive_int(_first_present(exercise, QUESTION_LIMIT_KEYS)) or DEFAULT_MAX_QUESTIONS


def test_question_limit(exercise: Mapping[str, Any]) -> int:
    return _positive_int(_first_present(exercise, TEST_LIMIT_KEYS)) or DEFAULT_TEST_QUESTIONS


def exercise_difficulty(exercise: Mapping[str, Any]) -> Optional[int]:
    raw = exercise.get("difficulty")
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, str):
        try:
            raw = float(raw)
        except ValueError:
            return None
    if isinstance(raw, (int, float)) and math.isfinite(raw):
        return int(raw) if float(raw).is_integer() else raw
    return None


def clamp_difficulty(value: Optional[float]) -> Optional[int]:
    if value is None:
        return None
    return int(min(3, max(1, value)))


def is_test_exercise(exercise: Mapping[str, Any]) -> bool:
    return exercise.get("is_test") is True or exercise.get("type") == "test"


# ---------------------------------------------------------------------------
# Active exercise
# ---------------------------------------------------------------------------


def build_test_pool(exercise: Mapping[str, Any], scope_exercises: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Questions a final test may draw from: same scope and difficulty, simple types."""

    difficulty = exercise.get("difficulty")
    pool: list[dict[str, Any]] = []
    for candidate in scope_exercises:
        if candidate.get("is_test") is True:
            continue
        if candidate.get("difficulty") != difficulty:
            continue
        if candidate.get("type") not in TEST_POOL_TYPES:
            continue

        questions = candidate.get("questions") if isinstance(candidate.get("questions"), list) else []
        for index, question in enumerate(questions):
            question = dict(question) if isinstance(question, Mapping) else {}
            pool.append(
                {
                    **question,
                    "type": question.get("type") or candidate.get("type"),
                    "_source_exercise_id": candidate.get("id"),
                    "_source_question_index": index,
                }
            )
    return pool


def build_active_exercise(
    exercise: Mapping[str, Any],
    scope_exercises: Iterable[Mapping[str, Any]] = (),
    seed: str = "seed",
) -> dict[str, Any]:
    """Return the exercise with the questions of this session.

    Tests mix questions from sibling exercises. Other exercises keep their own
    questions, shuffled and cut only when they exceed the question limit.
    """

    active = dict(exercise)

    if is_test_exercise(exercise):
        pool = build_test_pool(exercise, scope_exercises)
        limit = min(len(pool), test_question_limit(exercise))
        active["questions"] = shuffle_deterministic(pool, seed)[:limit]
        return active

    questions = exercise.get("questions") if isinstance(exercise.get("questions"), list) else []
    limit = min(len(questions), question_limit(exercise))
    if len(questions) <= limit:
        return active

    active["questions"] = shuffle_deterministic(questions, seed)[:limit]
    return active


def scope_filter(exercise: Mapping[str, Any]) -> dict[str, Any]:
    """Category when the exercise has one, otherwise its topic."""
    if exercise.get("category_id"):
        return {"category_id": exercise["category_id"]}
    if exercise.get("topic_id"):
        return {"topic_id": exercise["topic_id"]}
    return {}


# ---------------------------------------------------------------------------
# Recommendation
# ---------------------------------------------------------------------------

_RECOMMENDATION_COPY = {
    "harder": {
        "button": "Další cvičení (těžší)",
        "title": "Jdeš nahoru! 🔥",
        "text": "Máš super výsledek, zkus těžší úroveň ve stejné kategorii.",
    },
    "easier": {
        "button": "Další cvičení (lehčí)",
        "title": "Zkusíme lehčí krok 🙂",
        "text": "Tohle bylo těžší, dáme lehčí úroveň ve stejné kategorii.",
    },
    "same": {
        "button": "Další cvičení",
        "title": "Ještě jedno na procvičení 💪",
        "text": "Zůstaneme na stejné obtížnosti a dáme jiné cvičení.",
    },
}


def target_difficulty(current: int, score: float) -> int:
    if current == 1:
        return 2 if score >= 75 else 1
    if current == 2:
        if score >= 75:
            return 3
        if score >= 25:
            return 2
        return 1
    if current == 3:
        return 3 if score >= 25 else 2
    return current


def recommend_next(
    exercise: Mapping[str, Any],
    score: float,
    scope_exercises: Iterable[Mapping[str, Any]],
    rng: Optional[random.Random] = None,
) -> Optional[dict[str, Any]]:
    """Suggest the next exercise in the same scope based on the last score."""

    rng = rng or random.Random()

    def pick(candidates: list[Mapping[str, Any]]):
        return rng.choice(candidates) if candidates else None

    current_type = exercise.get("type") or None
    current = clamp_difficulty(exercise_difficulty(exercise) or 1)
    others = [item for item in scope_exercises if str(item.get("id")) != str(exercise.get("id"))]
    if not others:
        return None

    def by_difficulty(value: int) -> list[Mapping[str, Any]]:
        return [item for item in others if exercise_difficulty(item) == value]

    target = target_difficulty(current, float(score or 0))
    pool = by_difficulty(target)

    chosen = None
    if pool:
        if target != current and current_type:
            chosen = pick([item for item in pool if item.get("type") == current_type]) or pick(pool)
        else:
            different = [item for item in pool if item.get("type") and item.get("type") != current_type] if current_type else pool
            chosen = pick(different) or pick(pool)

    if chosen is None:
        chosen = pick(by_difficulty(current)) or pick(others)

    if chosen is None:
        return None

    direction = "harder" if target > current else "easier" if target < current else "same"
    logger.debug("Recommending %s after %s (difficulty %s -> %s)", chosen.get("id"), exercise.get("id"), current, target)
    return {
        **_RECOMMENDATION_COPY[direction],
        "direction": direction,
        "target_difficulty": target,
        "exercise": chosen,
    }
