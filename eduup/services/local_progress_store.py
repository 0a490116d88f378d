"""Progress of visitors who are not signed in.

The map lives in a mutable mapping under ``edu_progress_v1`` (for HTTP
requests, the guest rows behind ``GuestProgressStorage``) and mirrors the
browser's offline store:
``{exercise_id: {exerciseId, completed, score, stars, bestScore, bestStars,
lastPlayedAt, attempts}}``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, MutableMapping, Optional

STORAGE_KEY = "edu_progress_v1"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def merge_local_entry(
    exercise_id: str,
    prev: Optional[dict[str, Any]],
    *,
    completed: Optional[bool] = None,
    score: Any = None,
    stars: Any = None,
) -> dict[str, Any]:
    """Fold a new result into the previous entry, keeping best values."""

    prev = prev or {}
    score_given = _is_number(score)
    stars_given = _is_number(stars)

    return {
        "exerciseId": exercise_id,
        "completed": True if completed is None else bool(completed),
        "score": score if score_given else prev.get("score"),
        "stars": stars if stars_given else prev.get("stars"),
        "bestScore": max(prev.get("bestScore") or 0, score) if score_given else prev.get("bestScore"),
        "bestStars": max(prev.get("bestStars") or 0, stars) if stars_given else prev.get("bestStars"),
        "lastPlayedAt": _now_iso(),
        "attempts": (prev.get("attempts") or 0) + 1,
    }


class LocalProgressStore:
    def __init__(self, storage: MutableMapping[str, Any]):
        self.storage = storage

    def get_progress_map(self) -> dict[str, dict[str, Any]]:
        raw = self.storage.get(STORAGE_KEY)
        return dict(raw) if isinstance(raw, dict) else {}

    def get_progress_for(self, exercise_id: str) -> Optional[dict[str, Any]]:
        return self.get_progress_map().get(str(exercise_id))

    def save_progress(
        self,
        exercise_id: Optional[str],
        *,
        completed: Optional[bool] = None,
        score: Any = None,
        stars: Any = None,
    ) -> Optional[dict[str, Any]]:
        if not exercise_id:
            return None

        exercise_id = str(exercise_id)
        progress_map = self.get_progress_map()
        entry = merge_local_entry(
            exercise_id,
            progress_map.get(exercise_id),
            completed=completed,
            score=score,
            stars=stars,
        )
        progress_map[exercise_id] = entry
        # Reassign so the backing storage persists the change.
        self.storage[STORAGE_KEY] = progress_map
        return entry

    def clear_all_progress(self) -> None:
        self.storage.pop(STORAGE_KEY, None)

