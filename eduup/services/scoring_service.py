"""Server-side grading of exercise submissions.

Every exercise type has its own comparison rules, inherited from the play
screens of the web client:

* quiz / decision: exact equality with the expected option;
* fill: trimmed, case-insensitive text, with list and set answers;
* cloze: every ``___`` gap must match;
* image / listening: trimmed, case-insensitive text;
* analysis: coloured tokens (single-colour or two-colour mode);
* sort: a question counts only when every item sits in its category;
* match: score derived from the number of wrong pairings;
* memory: finishing the board is always worth full marks;
* test: loose text comparison and a 60 % pass mark.

Percentages are rounded half-up so scores match what the browser showed.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

SKIPPED_ANSWER = "(přeskočeno)"
EARLY_FINISH_EXPLANATION = "Ukončeno předčasně, otázka nebyla zodpovězena."
CORRECT_EXPLANATION = "Správně ✅"
WRONG_EXPLANATION = "Špatně ❌"

TEST_PASS_RATIO = 0.6
CLOZE_GAP = "___"

_LIST_SEPARATORS = re.compile(r"[,\n;]+")
_WHITESPACE = re.compile(r"\s+")


class UnsupportedExerciseType(ValueError):
    """Raised when a submission targets an exercise type without a grader."""


class IncompleteSubmission(ValueError):
    """Raised when a board is submitted before it was finished."""


@dataclass
class GradeResult:
    score: int
    stars: int
    correct_count: int
    total: int
    items: list[dict[str, Any]] = field(default_factory=list)
    passed: bool | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "stars": self.stars,
            "correct_count": self.correct_count,
            "total": self.total,
            "items": self.items,
            "passed": self.passed,
        }


# ---------------------------------------------------------------------------
# Arithmetic helpers
# ---------------------------------------------------------------------------


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent(correct: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(correct / total * 100)


def stars_for_score(score: int) -> int:
    if score >= 80:
        return 3
    if score >= 60:
        return 2
    return 1


def clamp_score(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number):
        return 0
    return max(0, min(100, round_half_up(number)))


def clamp_stars(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number):
        return 0
    return max(0, min(3, int(number)))


# ---------------------------------------------------------------------------
# Text normalisation
# ---------------------------------------------------------------------------


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_answer(value: Any) -> str:
    return _to_text(value).strip().lower()


def normalize_loose(value: Any) -> str:
    return _WHITESPACE.sub(" ", normalize_answer(value))


def parse_answer_list(raw: Any) -> list[str]:
    """Split a typed answer on commas, semicolons and new lines."""
    text = _to_text(raw).strip()
    if not text:
        return []
    return [item for item in (normalize_answer(part) for part in _LIST_SEPARATORS.split(text)) if item]


def format_expected_answer(expected: Any) -> str:
    """Human readable version of an expected answer for the review screen."""
    if isinstance(expected, list):
        return ", ".join(_to_text(item) for item in expected)
    if isinstance(expected, Mapping):
        items = expected.get("items")
        if isinstance(items, list):
            return ", ".join(_to_text(item) for item in items)
        return _to_text(dict(expected))
    return _to_text(expected)


# ---------------------------------------------------------------------------
# Answer evaluators
# ---------------------------------------------------------------------------


def evaluate_fill(raw: Any, expected: Any) -> bool:
    """Check a typed answer against a fill-in expectation.

    ``expected`` may be a string/number, a list of allowed values or an
    object ``{"mode": "subset" | "set_exact", "items": [...]}``. List and
    subset answers accept one or more comma separated values that must all be
    allowed; ``set_exact`` needs exactly the expected set.
    """

    if isinstance(expected, bool):
        return False

    if isinstance(expected, (str, int, float)):
        return normalize_answer(raw) == normalize_answer(expected)

    if isinstance(expected, list):
        allowed = {normalize_answer(item) for item in expected}
        provided = parse_answer_list(raw)
        return bool(provided) and all(item in allowed for item in provided)

    if isinstance(expected, Mapping):
        items = expected.get("items")
        allowed = {normalize_answer(item) for item in (items if isinstance(items, list) else [])}
        provided = parse_answer_list(raw)

        if expected.get("mode") == "set_exact":
            return bool(provided) and set(provided) == allowed

        # "subset" and objects without a mode behave the same way.
        return bool(provided) and all(item in allowed for item in provided)

    return False


def cloze_gap_count(text: Any) -> int:
    return max(0, len(_to_text(text).split(CLOZE_GAP)) - 1)


def split_cloze_answers(raw: Any) -> list[str]:
    if isinstance(raw, (list, tuple)):
        return [_to_text(part) for part in raw]
    if isinstance(raw, Mapping):
        indexed = {int(key): value for key, value in raw.items() if str(key).lstrip("-").isdigit()}
        if not indexed:
            return []
        return [_to_text(indexed.get(position)) for position in range(max(indexed) + 1)]
    return _to_text(raw).split(CLOZE_GAP)


def evaluate_cloze(text: Any, raw_answers: Any, expected: Any) -> bool:
    gap_count = cloze_gap_count(text)
    if gap_count == 0:
        return False

    user_parts = split_cloze_answers(raw_answers)
    expected_parts = split_cloze_answers(expected)
    for position in range(gap_count):
        user_value = user_parts[position] if position < len(user_parts) else ""
        expected_value = expected_parts[position] if position < len(expected_parts) else ""
        if normalize_answer(user_value) != normalize_answer(expected_value):
            return False
    return True


def evaluate_test_answer(expected: Any, user: Any) -> bool:
    if isinstance(expected, Mapping) and expected.get("mode") == "subset" and isinstance(expected.get("items"), list):
        user_norm = normalize_loose(user)
        return any(normalize_loose(item) == user_norm for item in expected["items"])
    return normalize_loose(expected) == normalize_loose(user)


def analysis_tokens(question: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Return ``[{"char", "expected"}]`` tokens for an analysis question."""

    source = question.get("tokens")
    if not isinstance(source, list):
        source = question.get("words")

    if isinstance(source, list):
        tokens = []
        for token in source:
            token = token if isinstance(token, Mapping) else {}
            char = token.get("char", token.get("word"))
            expected = token.get("expected", token.get("color"))
            tokens.append({"char": _to_text(char), "expected": expected})
        return tokens

    raw = _to_text(question.get("text") or question.get("question"))
    return [{"char": char, "expected": None} for char in _WHITESPACE.sub("", raw)]


def analysis_enabled_colors(legend: Any) -> list[str]:
    """Colours a learner may use; a legend naming one colour means single mode."""

    if not isinstance(legend, Mapping) or not (legend.get("blue") or legend.get("red")):
        return ["blue", "red"]

    enabled = [color for color in ("blue", "red") if legend.get(color)]
    return enabled or ["blue", "red"]


def evaluate_analysis(question: Mapping[str, Any], picks: Any, legend: Any = None) -> bool:
    tokens = analysis_tokens(question)
    if not tokens:
        return False

    selected: dict[int, str] = {}
    if isinstance(picks, Mapping):
        for key, color in picks.items():
            if color and str(key).lstrip("-").isdigit():
                selected[int(key)] = color
    elif isinstance(picks, list):
        selected = {index: color for index, color in enumerate(picks) if color}

    expected_values = [token["expected"] for token in tokens]
    if any(value not in (None, "blue", "red") for value in expected_values):
        return False

    enabled = analysis_enabled_colors(question.get("legend") or legend)
    if len(enabled) == 1:
        single_color = enabled[0]
        expected_set = {index for index, value in enumerate(expected_values) if value == single_color}
        picked_set = {index for index, color in selected.items() if color == single_color}
        return expected_set == picked_set

    if any(value is None for value in expected_values):
        return False
    return all(selected.get(index) == value for index, value in enumerate(expected_values))


# ---------------------------------------------------------------------------
# Whole-exercise graders
# ---------------------------------------------------------------------------


def grade_match(errors: int, total_pairs: int) -> tuple[int, int]:
    if total_pairs <= 0:
        return 0, 0

    score = max(0, round_half_up(100 - (errors / total_pairs) * 20))
    if score >= 90:
        stars = 3
    elif score >= 70:
        stars = 2
    elif score >= 50:
        stars = 1
    else:
        stars = 0
    return score, stars


def grade_memory() -> tuple[int, int]:
    return 100, 3


def sort_question_percentage(question: Mapping[str, Any], placements: Any) -> tuple[int, int, int]:
    """Return (correct, total, percentage) for one sort board."""

    placements = placements if isinstance(placements, Mapping) else {}
    correct_count = 0
    total_count = 0
    for category in question.get("categories") or []:
        if not isinstance(category, Mapping):
            continue
        placed = placements.get(category.get("name")) or []
        for item in category.get("items") or []:
            total_count += 1
            if item in placed:
                correct_count += 1
    return correct_count, total_count, percent(correct_count, total_count)


def grade_sort(questions: Sequence[Mapping[str, Any]], placements: Mapping[Any, Any]) -> tuple[int, int]:
    """Score for sort boards; only boards with every item in place count."""

    perfect = sum(
        1
        for index, question in enumerate(questions)
        if sort_question_percentage(question, _answer_for(placements, index))[2] == 100
    )
    score = percent(perfect, len(questions))
    return score, stars_for_score(score)


def grade_test(correct: int, total: int) -> dict[str, Any]:
    score = percent(correct, total)
    passed = total > 0 and correct >= math.ceil(total * TEST_PASS_RATIO)
    return {
        "score": score,
        "correct": correct,
        "total": total,
        "passed": passed,
        "stars": stars_for_score(score) if passed else 0,
    }


def sort_questions_from_payload(payload: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Sort boards, accepting both the board list and the flat editor layout."""

    questions = payload.get("questions")
    if isinstance(questions, list) and questions:
        return [question for question in questions if isinstance(question, Mapping)]

    names = payload.get("categories")
    items = payload.get("items")
    if not isinstance(names, list) or not isinstance(items, list):
        return []

    categories = []
    for name in names:
        category_name = name.get("name") if isinstance(name, Mapping) else name
        members = [
            item.get("text") if isinstance(item, Mapping) else item
            for item in items
            if isinstance(item, Mapping) and item.get("category") == category_name
        ]
        categories.append({"name": category_name, "items": members})
    return [{"question": payload.get("question") or "Roztřiď do kategorií", "categories": categories}]


def match_pairs_from_payload(payload: Mapping[str, Any]) -> list[dict[str, Any]]:
    questions = payload.get("questions")
    if isinstance(questions, list) and questions and isinstance(questions[0], Mapping):
        pairs = questions[0].get("pairs")
        if isinstance(pairs, list):
            return pairs
    pairs = payload.get("pairs")
    return pairs if isinstance(pairs, list) else []


def _answer_for(answers: Mapping[Any, Any], index: int) -> Any:
    if index in answers:
        return answers[index]
    return answers.get(str(index))


def _has_answer(answers: Mapping[Any, Any], index: int) -> bool:
    return index in answers or str(index) in answers


def _question_prompt(question: Mapping[str, Any], index: int) -> str:
    prompt = question.get("question") or question.get("text") or question.get("prompt")
    return _to_text(prompt) if prompt else f"Otázka {index + 1}"


def _review_item(
    index: int,
    exercise_type: str,
    question: Mapping[str, Any],
    *,
    user_answer: Any,
    correct_answer: Any,
    correct: bool,
) -> dict[str, Any]:
    options = question.get("options")
    return {
        "index": index,
        "type": question.get("type") or exercise_type,
        "prompt": _question_prompt(question, index),
        "user_answer": user_answer,
        "correct_answer": correct_answer,
        "correct": correct,
        "explanation": question.get("explanation") or (CORRECT_EXPLANATION if correct else WRONG_EXPLANATION),
        "options": options if isinstance(options, list) else [],
    }


def _grade_question(exercise_type: str, question: Mapping[str, Any], answer: Any, payload: Mapping[str, Any]) -> tuple[bool, Any, Any]:
    """Return (correct, user_answer_for_review, correct_answer_for_review)."""

    expected = question.get("answer")

    if exercise_type in {"quiz", "decision"}:
        return answer is not None and answer == expected, answer, expected

    if exercise_type == "fill":
        return evaluate_fill(answer, expected), _to_text(answer), format_expected_answer(expected)

    if exercise_type in {"image", "listening"}:
        return normalize_answer(answer) == normalize_answer(expected), _to_text(answer), _to_text(expected)

    if exercise_type == "cloze":
        text = question.get("text") if question.get("text") is not None else question.get("question")
        gaps = cloze_gap_count(text)
        user_parts = split_cloze_answers(answer)[:gaps]
        expected_parts = split_cloze_answers(expected)[:gaps]
        return (
            evaluate_cloze(text, answer, expected),
            " | ".join(part.strip() for part in user_parts),
            " | ".join(part.strip() for part in expected_parts),
        )

    if exercise_type == "analysis":
        tokens = analysis_tokens(question)
        picks = answer if isinstance(answer, (Mapping, list)) else {}
        correct = evaluate_analysis(question, picks, payload.get("legend"))
        picked = picks if isinstance(picks, Mapping) else dict(enumerate(picks))
        return (
            correct,
            [{"char": token["char"], "picked": picked.get(i, picked.get(str(i)))} for i, token in enumerate(tokens)],
            [{"char": token["char"], "expected": token["expected"]} for token in tokens],
        )

    if exercise_type == "sort":
        correct_count, total_count, percentage = sort_question_percentage(question, answer)
        return percentage == 100, answer, {
            category.get("name"): category.get("items") or []
            for category in question.get("categories") or []
            if isinstance(category, Mapping)
        }

    if exercise_type == "test":
        return evaluate_test_answer(expected, answer), _to_text(answer), format_expected_answer(expected)

    raise UnsupportedExerciseType(exercise_type)


def grade_questions(
    exercise_type: str,
    questions: Sequence[Mapping[str, Any]],
    answers: Mapping[Any, Any],
    payload: Mapping[str, Any] | None = None,
    *,
    finished_early: bool = False,
) -> GradeResult:
    """Grade a question based exercise and build its review items."""

    payload = payload or {}
    items: list[dict[str, Any]] = []
    for index, question in enumerate(questions):
        question = question if isinstance(question, Mapping) else {}
        if finished_early and not _has_answer(answers, index):
            continue

        correct, user_answer, correct_answer = _grade_question(
            exercise_type, question, _answer_for(answers, index), payload
        )
        items.append(
            _review_item(
                index,
                exercise_type,
                question,
                user_answer=user_answer,
                correct_answer=correct_answer,
                correct=correct,
            )
        )

    if finished_early:
        early = finish_early(questions, items, exercise_type)
        if exercise_type != "test":
            return early
        items = early.items

    correct_count = sum(1 for item in items if item["correct"])
    total = len(questions)

    if exercise_type == "test":
        test_result = grade_test(correct_count, total)
        return GradeResult(
            score=test_result["score"],
            stars=test_result["stars"],
            correct_count=correct_count,
            total=total,
            items=items,
            passed=test_result["passed"],
        )

    score = percent(correct_count, total)
    return GradeResult(
        score=score,
        stars=stars_for_score(score),
        correct_count=correct_count,
        total=total,
        items=items,
    )


def skipped_item(index: int, exercise_type: str, question: Mapping[str, Any]) -> dict[str, Any]:
    options = question.get("options")
    return {
        "index": index,
        "type": question.get("type") or exercise_type or "exercise",
        "prompt": _question_prompt(question, index),
        "user_answer": SKIPPED_ANSWER,
        "correct_answer": _to_text(question.get("answer")),
        "correct": False,
        "explanation": EARLY_FINISH_EXPLANATION,
        "options": options if isinstance(options, list) else [],
    }


def finish_early(
    questions: Sequence[Mapping[str, Any]],
    items: Sequence[Mapping[str, Any]],
    exercise_type: str,
) -> GradeResult:
    """Close an attempt the learner abandoned: unanswered questions are wrong."""

    total = len(questions) or 1
    collected = [dict(item) for item in items if isinstance(item, Mapping)]
    answered = {item.get("index") for item in collected if isinstance(item.get("index"), int)}

    for index in range(total):
        if index in answered:
            continue
        question = questions[index] if index < len(questions) and isinstance(questions[index], Mapping) else {}
        collected.append(skipped_item(index, exercise_type, question))

    collected.sort(key=lambda item: item.get("index") or 0)
    correct_count = sum(1 for item in collected if item.get("correct"))
    score = percent(correct_count, total)
    return GradeResult(
        score=score,
        stars=stars_for_score(score),
        correct_count=correct_count,
        total=total,
        items=collected,
    )


def _match_pair(pairs: Sequence[Any], left: Any) -> Mapping[str, Any] | None:
    if isinstance(left, bool) or not isinstance(left, int) or not 0 <= left < len(pairs):
        return None
    pair = pairs[left]
    return pair if isinstance(pair, Mapping) else None


def grade_match_attempts(
    pairs: Sequence[Any],
    attempts: Sequence[Mapping[str, Any]],
    *,
    finished_early: bool = False,
) -> GradeResult:
    """
    Grade the picks made on a match board.

    Each attempt is ``{left, right}``: the index of a pair and the right-hand
    text the learner joined to it. A pair is matched by an attempt naming its
    own right-hand text; every other attempt is an error.

    Raises:
        IncompleteSubmission: some pair was never matched and the learner
            did not finish early.
    """
    matched: set[int] = set()
    errors = 0
    items: list[dict[str, Any]] = []

    for position, attempt in enumerate(attempts):
        attempt = attempt if isinstance(attempt, Mapping) else {}
        left = attempt.get("left")
        pair = _match_pair(pairs, left)
        expected = pair.get("right") if pair is not None else None
        correct = pair is not None and attempt.get("right") == expected
        if correct:
            matched.add(left)
        else:
            errors += 1
        items.append(
            {
                "index": position,
                "type": "match",
                "prompt": _to_text(pair.get("left")) if pair is not None else "",
                "user_answer": attempt.get("right"),
                "correct_answer": expected,
                "correct": correct,
                "explanation": (pair or {}).get("explanation") or (CORRECT_EXPLANATION if correct else WRONG_EXPLANATION),
                "options": [],
            }
        )

    if not pairs:
        return GradeResult(score=0, stars=0, correct_count=0, total=0, items=items)

    missing = [index for index in range(len(pairs)) if index not in matched]
    if missing and not finished_early:
        raise IncompleteSubmission(f"{len(missing)} of {len(pairs)} pairs were not matched")

    if finished_early:
        for index in missing:
            pair = _match_pair(pairs, index) or {}
            items.append(
                {
                    "index": len(items),
                    "type": "match",
                    "prompt": _to_text(pair.get("left")),
                    "user_answer": SKIPPED_ANSWER,
                    "correct_answer": pair.get("right"),
                    "correct": False,
                    "explanation": EARLY_FINISH_EXPLANATION,
                    "options": [],
                }
            )
        score = percent(len(matched), len(pairs))
        stars = stars_for_score(score)
    else:
        score, stars = grade_match(errors, len(pairs))

    return GradeResult(score=score, stars=stars, correct_count=len(matched), total=len(pairs), items=items)


def grade_submission(
    exercise: Mapping[str, Any],
    answers: Mapping[Any, Any] | None = None,
    *,
    match_attempts: Sequence[Mapping[str, Any]] | None = None,
    finished_early: bool = False,
) -> GradeResult:
    """Grade a learner's answers for an exercise (flattened payload dict)."""

    exercise_type = exercise.get("type")
    answers = answers or {}
    is_test = exercise.get("is_test") is True or exercise_type == "test"
    questions = exercise.get("questions") if isinstance(exercise.get("questions"), list) else []

    if is_test:
        return grade_questions("test", questions, answers, exercise, finished_early=finished_early)

    if exercise_type == "memory":
        score, stars = grade_memory()
        return GradeResult(score=score, stars=stars, correct_count=1, total=1)

    if exercise_type == "match":
        return grade_match_attempts(match_pairs_from_payload(exercise), match_attempts or [], finished_early=finished_early)

    if exercise_type == "sort":
        boards = sort_questions_from_payload(exercise)
        result = grade_questions("sort", boards, answers, exercise, finished_early=finished_early)
        if not finished_early:
            result.score, result.stars = grade_sort(boards, answers)
        return result

    if exercise_type in {"quiz", "decision", "fill", "cloze", "image", "listening", "analysis"}:
        return grade_questions(exercise_type, questions, answers, exercise, finished_early=finished_early)

    raise UnsupportedExerciseType(f"Unsupported exercise type: {exercise_type!r}")
