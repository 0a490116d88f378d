from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PlaySession(BaseModel):
    attempt_key: str
    exercise: Dict[str, Any]
    question_count: int


class MatchAttempt(BaseModel):
    left: int
    right: Any = None


class SubmissionRequest(BaseModel):
    """Answers of one play session.

    ``answers`` maps the question index (as shown to the learner) to the
    answer; its shape depends on the exercise type.
    """

    attempt_key: str = Field(min_length=1, max_length=100)
    answers: Dict[str, Any] = Field(default_factory=dict)
    match_attempts: List[MatchAttempt] = Field(default_factory=list)
    finished_early: bool = False
    best_combo: int = 0


class ReviewItem(BaseModel):
    index: int
    type: Optional[str] = None
    prompt: Optional[str] = None
    user_answer: Any = None
    correct_answer: Any = None
    correct: bool
    explanation: Optional[str] = None
    options: List[Any] = Field(default_factory=list)


class GradeResultRead(BaseModel):
    score: int
    stars: int
    correct_count: int
    total: int
    passed: Optional[bool] = None
    items: List[ReviewItem] = Field(default_factory=list)


class Recommendation(BaseModel):
    button: str
    title: str
    text: str
    direction: str
    target_difficulty: int
    exercise_id: str
    exercise_title: Optional[str] = None


class SubmissionResponse(BaseModel):
    result: GradeResultRead
    recommendation: Optional[Recommendation] = None
    saved_remotely: bool = False
    duplicate: bool = False


class AttemptRead(BaseModel):
    attempt_key: str
    exercise_id: str
    exercise_title: Optional[str] = None
    topic_id: Optional[str] = None
    score: int
    stars: int
    correct_count: int
    total: int
    best_combo: int
    items: List[ReviewItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
