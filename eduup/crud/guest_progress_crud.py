"""Server-side storage of guest progress.

Only a short guest id travels in the session cookie; the entries themselves
live in ``guest_progress`` so the cookie stays small however many exercises
a visitor plays.
"""

from __future__ import annotations

import uuid
from typing import Any, Iterator, MutableMapping, Optional

from sqlalchemy.orm import Session

from eduup.models.progress.guest_progress_model import GuestProgress
from eduup.services.local_progress_store import STORAGE_KEY

GUEST_ID_SESSION_KEY = "edu_guest_id"


def list_entries(db: Session, guest_id: str) -> dict[str, dict[str, Any]]:
    rows = db.query(GuestProgress).filter(GuestProgress.guest_id == guest_id).order_by(GuestProgress.id.asc()).all()
    return {row.exercise_id: dict(row.entry or {}) for row in rows}


def replace_entries(db: Session, guest_id: str, progress_map: dict[str, dict[str, Any]]) -> None:
    """Make the stored rows of a guest equal to ``progress_map``."""
    rows = {row.exercise_id: row for row in db.query(GuestProgress).filter(GuestProgress.guest_id == guest_id)}

    for exercise_id, entry in progress_map.items():
        exercise_id = str(exercise_id)
        entry = dict(entry) if isinstance(entry, dict) else {}
        row = rows.pop(exercise_id, None)
        if row is None:
            db.add(GuestProgress(guest_id=guest_id, exercise_id=exercise_id, entry=entry))
        elif row.entry != entry:
            row.entry = entry

    for row in rows.values():
        db.delete(row)
    db.commit()


def delete_entries(db: Session, guest_id: str) -> int:
    deleted = db.query(GuestProgress).filter(GuestProgress.guest_id == guest_id).delete()
    db.commit()
    return deleted


class GuestProgressStorage(MutableMapping[str, Any]):
    """
    Mapping view of one guest's rows for ``LocalProgressStore``.

    The only key is ``STORAGE_KEY``; its value is the whole progress map.
    The guest id is created in the session on the first write.
    """

    def __init__(self, db: Session, session: MutableMapping[str, Any]):
        self.db = db
        self.session = session

    @property
    def guest_id(self) -> Optional[str]:
        value = self.session.get(GUEST_ID_SESSION_KEY)
        return value if isinstance(value, str) and value else None

    def _ensure_guest_id(self) -> str:
        guest_id = self.guest_id
        if guest_id is None:
            guest_id = uuid.uuid4().hex
            self.session[GUEST_ID_SESSION_KEY] = guest_id
        return guest_id

    def __getitem__(self, key: str) -> dict[str, dict[str, Any]]:
        if key != STORAGE_KEY:
            raise KeyError(key)
        return list_entries(self.db, self.guest_id) if self.guest_id else {}

    def __setitem__(self, key: str, value: Any) -> None:
        if key != STORAGE_KEY:
            raise KeyError(key)
        replace_entries(self.db, self._ensure_guest_id(), value if isinstance(value, dict) else {})

    def __delitem__(self, key: str) -> None:
        if key != STORAGE_KEY:
            raise KeyError(key)
        if self.guest_id:
            delete_entries(self.db, self.guest_id)

    def __iter__(self) -> Iterator[str]:
        return iter([STORAGE_KEY] if self.guest_id else [])

    def __len__(self) -> int:
        return 1 if self.guest_id else 0
