"""Pydantic schemas for progress, streak and profile endpoints."""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ProgressUpsert(BaseModel):
    """Result of one play session as reported by the browser."""

    exercise_id: Optional[str] = None
    score: Any = 0
    stars: Any = 0
    completed: bool = True


class ProgressRead(BaseModel):
    exercise_id: str
    completed: bool
    attempts: int
    best_score: int
    best_stars: int
    completed_at: Optional[datetime] = None
    last_played_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LocalProgressEntry(BaseModel):
    exerciseId: str
    completed: bool
    score: Optional[float] = None
    stars: Optional[float] = None
    bestScore: Optional[float] = None
    bestStars: Optional[float] = None
    lastPlayedAt: Optional[str] = None
    attempts: int = 0


class ProgressSaveResponse(BaseModel):
    local: Optional[LocalProgressEntry] = None
    remote: Optional[ProgressRead] = None
    skipped: bool = False
    reason: Optional[str] = None


class StreakRead(BaseModel):
    streak_count: int = 0
    longest_streak: int = 0
    longest_streak_date: Optional[date] = None
    last_active_date: Optional[date] = None

    class Config:
        from_attributes = True


class TopicPerformance(BaseModel):
    topic_id: str
    topic_name: Optional[str] = None
    avg_score: float
    count: int


class SubjectStats(BaseModel):
    subject: str
    completed: int = 0
    total_exercises: int = 0
    avg_score: int = 0
    total_stars: int = 0
    max_stars: int = 0
    completion_rate: int = 0
    weakest_topics: List[TopicPerformance] = Field(default_factory=list)
    strongest_topics: List[TopicPerformance] = Field(default_factory=list)


class OverallStats(BaseModel):
    total_completed: int = 0
    total_stars: int = 0
    overall_avg: int = 0


class RankInfo(BaseModel):
    rank: int
    total: int
    percentile: int
    badge: Optional[str] = None


class ProfileResponse(BaseModel):
    username: Optional[str] = None
    email: str
    created_at: Optional[datetime] = None
    is_admin: bool = False
    streak: StreakRead = Field(default_factory=StreakRead)
    rank: Optional[RankInfo] = None
    overall: OverallStats = Field(default_factory=OverallStats)
    subjects: List[SubjectStats] = Field(default_factory=list)
    # ISO day -> exercises finished that day.
    activity: Dict[str, int] = Field(default_factory=dict)


class LeaderboardEntry(BaseModel):
    position: int
    user_id: int
    username: str
    total_stars: int
    completed_count: int
    last_active: Optional[datetime] = None
    is_me: bool = False
