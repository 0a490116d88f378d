from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel


class ExerciseForm(BaseModel):
    """Editor form. ``payload`` is a JSON object or its text."""

    type: str = "decision"
    title: str = ""
    instructions: Optional[str] = None
    topic_id: Optional[str] = None
    category_id: Optional[str] = None
    difficulty: Any = 1
    is_test: bool = False
    payload: Union[dict, str, None] = None


class AdminExerciseRead(BaseModel):
    id: str
    created_at: Optional[datetime] = None
    created_by: Optional[int] = None
    type: str
    title: str
    instructions: Optional[str] = None
    topic_id: Optional[str] = None
    category_id: Optional[str] = None
    payload: dict

    class Config:
        from_attributes = True
