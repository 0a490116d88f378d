"""Catalog responses: subjects, topics, categories and their progress summaries."""
from typing import Optional

from pydantic import BaseModel, Field


class ProgressSummary(BaseModel):
    completed: int = 0
    total: int = 0
    stars: int = 0
    max_stars: int = 0


class SubjectRead(BaseModel):
    id: str
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None
    order: int = 0

    class Config:
        from_attributes = True


class TopicRead(BaseModel):
    id: str
    subject: str
    grade: int
    order: int = 0
    name: str
    description: Optional[str] = None
    explanation: Optional[str] = None

    class Config:
        from_attributes = True


class TopicWithProgress(TopicRead):
    # Topics with categories open the category list, the others open exercises.
    has_categories: bool = False
    progress: ProgressSummary = Field(default_factory=ProgressSummary)


class CategoryRead(BaseModel):
    id: str
    topic_id: str
    order: int = 0
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class CategoryWithProgress(CategoryRead):
    progress: ProgressSummary = Field(default_factory=ProgressSummary)


class GradeProgress(BaseModel):
    grade: int
    topic_count: int
    progress: ProgressSummary


class ExerciseListItem(BaseModel):
    """An exercise with the learner's state, as listed on the exercises page."""

    exercise: dict
    completed: bool = False
    stars: int = 0
    best_score: Optional[int] = None


class ExerciseList(BaseModel):
    topic: TopicRead
    category: Optional[CategoryRead] = None
    exercises: list[ExerciseListItem] = Field(default_factory=list)
    # Difficulty level -> whether its final test can be started.
    tests_unlocked: dict[int, bool] = Field(default_factory=dict)



class SearchTopicHit(BaseModel):
    topic: TopicRead
    # False when only some of its categories matched.
    matched: bool = True
    categories: list[CategoryRead] = Field(default_factory=list)


class SearchGroup(BaseModel):
    subject: str
    grade: int
    topics: list[SearchTopicHit] = Field(default_factory=list)
