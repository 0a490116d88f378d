"""Default payloads and payload clean-up for the exercise editor."""

import copy
import json
import math
from typing import Any, Mapping, Optional

from eduup.crud.catalog_crud import normalize_id

ANALYSIS_COLORS = ("red", "blue")


class ExercisePayloadError(ValueError):
    """Editor input that cannot be stored."""


_TEMPLATES: dict[str, dict[str, Any]] = {
    "quiz": {
        "questions": [
            {"question": "Otázka…", "options": ["A", "B", "C"], "answer": "A", "explanation": ""},
        ],
    },
    "fill": {
        "questions": [
            {"question": "Doplň slovo: ___", "answer": "správná odpověď", "explanation": ""},
        ],
    },
    "cloze": {
        "text": "Doplň chybějící slova v textu…",
        "questions": [
            {"question": "Věta: Mám rád ___.", "answer": "čokoládu", "explanation": ""},
        ],
    },
    "match": {
        "instructions_hint": "Páruj správné dvojice.",
        "pairs": [
            {"left": "Pes", "right": "Dog", "explanation": ""},
            {"left": "Kočka", "right": "Cat", "explanation": ""},
        ],
    },
    "memory": {
        "cards": [
            {"id": "1a", "value": "A", "explanation": ""},
            {"id": "1b", "value": "A", "explanation": ""},
            {"id": "2a", "value": "B", "explanation": ""},
            {"id": "2b", "value": "B", "explanation": ""},
        ],
    },
    "sort": {
        "categories": ["Samohlásky", "Souhlásky"],
        "items": [
            {"text": "A", "category": "Samohlásky", "explanation": ""},
            {"text": "K", "category": "Souhlásky", "explanation": ""},
        ],
    },
    "analysis": {
        "legend": {"red": "Co znamená červená (red)…", "blue": "Co znamená modrá (blue)…"},
        "text": "Text k rozboru…",
        "questions": [
            {"question": "Najdi epizeuxis.", "words": [], "answer": "…", "explanation": ""},
        ],
    },
    "listening": {
        "audio_url": None,
        "text": "Co slyšíš? Přepiš větu…",
        "questions": [{"question": "Napiš přesně větu z poslechu.", "answer": "…", "explanation": ""}],
    },
    "image": {
        "image_url": None,
        "text": "Podívej se na obrázek a napiš odpověď…",
        "questions": [{"question": "Co je na obrázku?", "answer": "…", "explanation": ""}],
    },
    "test": {
        "note": "Otázky testu se skládají automaticky z ostatních cvičení tématu.",
        "questions": [],
        "explanation": "",
    },
}
_TEMPLATES["decision"] = _TEMPLATES["quiz"]

_DEFAULT_TEMPLATE = {"questions": [{"question": "", "answer": "", "explanation": ""}]}


def template_for(exercise_type: Optional[str]) -> dict[str, Any]:
    """A fresh copy of the starter payload for an exercise type."""
    return copy.deepcopy(_TEMPLATES.get(exercise_type or "", _DEFAULT_TEMPLATE))


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return "" if value is None else str(value)


def split_to_words(sentence: Any) -> list[str]:
    return [word for word in " ".join(_as_text(sentence).split()).split(" ") if word]


def normalize_analysis_payload(payload: Any) -> dict[str, Any]:
    result = copy.deepcopy(payload) if isinstance(payload, dict) else {}

    legend = result.get("legend")
    if isinstance(legend, str):
        legend = {"red": legend, "blue": ""}
    if not isinstance(legend, dict):
        legend = {"red": "", "blue": ""}
    legend["red"] = _as_text(legend.get("red"))
    legend["blue"] = _as_text(legend.get("blue"))
    result["legend"] = legend

    result["text"] = _as_text(result.get("text"))

    questions = result.get("questions") if isinstance(result.get("questions"), list) else []
    normalized_questions = []
    for question in questions:
        question = dict(question) if isinstance(question, dict) else {}
        for key in ("question", "answer", "explanation"):
            question[key] = _as_text(question.get(key))

        words = question.get("words") if isinstance(question.get("words"), list) else []
        if not words:
            # New questions start with every word of the sentence marked blue.
            words = [{"word": word, "color": "blue"} for word in split_to_words(question["question"])]
        question["words"] = [
            {
                "word": _as_text(word.get("word")),
                "color": word.get("color") if word.get("color") in ANALYSIS_COLORS else "blue",
            }
            for word in words
            if isinstance(word, dict)
        ]
        normalized_questions.append(question)
    result["questions"] = normalized_questions
    return result


def _parse_payload(raw: Any) -> dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ExercisePayloadError("Payload není platný JSON") from exc
    if not isinstance(raw, dict):
        raise ExercisePayloadError("Payload musí být JSON objekt")
    return raw


def _difficulty(raw: Any) -> int:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(value) or value == 0:
        return 1
    return int(min(3, max(1, value)))


def prepare_exercise_values(form: Mapping[str, Any]) -> dict[str, Any]:
    """
    Turns editor input into column values for an Exercise row.

    Raises:
        ExercisePayloadError: invalid JSON payload or an empty title.
    """
    payload = _parse_payload(form.get("payload"))

    title = _as_text(form.get("title")).strip()
    if not title:
        raise ExercisePayloadError("Název úlohy je povinný")

    is_test = bool(form.get("is_test"))
    exercise_type = "test" if is_test else (_as_text(form.get("type")).strip() or "quiz")

    if exercise_type == "analysis":
        payload = normalize_analysis_payload(payload)

    instructions = form.get("instructions")
    return {
        "type": exercise_type,
        "title": title,
        "instructions": instructions or None,
        "topic_id": normalize_id(form.get("topic_id")),
        "category_id": normalize_id(form.get("category_id")),
        "payload": {
            **payload,
            "difficulty": _difficulty(form.get("difficulty")),
            "is_test": is_test,
        },
    }
