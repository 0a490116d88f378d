"""Catalog browsing: subjects, grades, topics, categories and exercises."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from eduup.api.v2.dependencies import get_db, get_guest_storage, get_optional_user
from eduup.crud import catalog_crud
from eduup.models.user.user_model import User
from eduup.schemas.catalog.catalog_schema import (
    CategoryRead,
    CategoryWithProgress,
    ExerciseList,
    ExerciseListItem,
    GradeProgress,
    ProgressSummary,
    SearchGroup,
    SearchTopicHit,
    SubjectRead,
    TopicRead,
    TopicWithProgress,
)
from eduup.services import progress_service

router = APIRouter()

GRADES = range(1, 10)
DIFFICULTIES = (1, 2, 3)


def _lookup(request: Request, db: Session, user: Optional[User]):
    return progress_service.progress_lookup_for(db, user.id if user else None, get_guest_storage(request, db))


@router.get("/subjects", response_model=List[SubjectRead], summary="Lister les matières")
def list_subjects(db: Session = Depends(get_db)):
    return catalog_crud.list_subjects(db)


@router.get("/grades", response_model=List[GradeProgress], summary="Progression par classe")
def list_grades(
    request: Request,
    subject: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    topics = catalog_crud.list_topics(db, subject=subject)
    exercises = [
        catalog_crud.exercise_to_dict(row)
        for row in catalog_crud.list_exercises_for_topics(db, [topic.id for topic in topics])
    ]
    per_grade = progress_service.grade_progress(topics, exercises, _lookup(request, db, current_user))

    return [
        GradeProgress(
            grade=grade,
            topic_count=sum(1 for topic in topics if topic.grade == grade),
            progress=ProgressSummary(**per_grade.get(grade, {})),
        )
        for grade in GRADES
    ]


@router.get("/search", response_model=List[SearchGroup], summary="Hledat témata a kategorie")
def search_catalog(q: str = "", db: Session = Depends(get_db)):
    """Case-insensitive substring search over topic and category names, grouped by subject and grade."""
    return [
        SearchGroup(
            subject=group["subject"],
            grade=group["grade"],
            topics=[
                SearchTopicHit(
                    topic=TopicRead.model_validate(hit["topic"]),
                    matched=hit["matched"],
                    categories=[CategoryRead.model_validate(category) for category in hit["categories"]],
                )
                for hit in group["topics"]
            ],
        )
        for group in catalog_crud.search(db, q)
    ]


@router.get("/topics", response_model=List[TopicWithProgress], summary="Lister les thèmes")
def list_topics(
    request: Request,
    subject: Optional[str] = None,
    grade: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    topics = catalog_crud.list_topics(db, subject=subject, grade=grade)
    topic_ids = [topic.id for topic in topics]
    exercises = [catalog_crud.exercise_to_dict(row) for row in catalog_crud.list_exercises_for_topics(db, topic_ids)]
    with_categories = {category.topic_id for category in catalog_crud.list_categories_for_topics(db, topic_ids)}
    summaries = progress_service.topic_progress(exercises, _lookup(request, db, current_user), topic_ids)

    return [
        TopicWithProgress(
            **TopicRead.model_validate(topic).model_dump(),
            has_categories=topic.id in with_categories,
            progress=ProgressSummary(**summaries[topic.id]),
        )
        for topic in topics
    ]


@router.get("/topics/{topic_id}", response_model=TopicRead)
def get_topic(topic_id: str, db: Session = Depends(get_db)):
    topic = catalog_crud.get_topic(db, topic_id)
    if not topic:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Topic not found")
    return topic


@router.get("/topics/{topic_id}/categories", response_model=List[CategoryWithProgress])
def list_topic_categories(
    request: Request,
    topic_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    categories = catalog_crud.list_categories(db, topic_id)
    exercises = [
        catalog_crud.exercise_to_dict(row)
        for row in catalog_crud.list_exercises_for_topics(db, [catalog_crud.normalize_id(topic_id)])
    ]
    category_ids = [category.id for category in categories]
    summaries = progress_service.category_progress(exercises, _lookup(request, db, current_user), category_ids)

    return [
        CategoryWithProgress(
            **CategoryRead.model_validate(category).model_dump(),
            progress=ProgressSummary(**summaries[category.id]),
        )
        for category in categories
    ]


@router.get("/exercises", response_model=ExerciseList, summary="Cvičení tématu nebo kategorie")
def list_exercises(
    request: Request,
    topic: Optional[str] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """
    Exercises of a topic, or of one of its categories.

    Without ``category`` only the exercises filed under no category are
    returned. ``tests_unlocked`` tells, per difficulty, whether the final
    test of that level is open.
    """
    topic_row = catalog_crud.get_topic(db, topic)
    if not topic_row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Topic not found")

    category_row = None
    if catalog_crud.normalize_id(category) is not None:
        category_row = catalog_crud.get_category(db, category)
        if not category_row or category_row.topic_id != topic_row.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")

    exercises = [catalog_crud.exercise_to_dict(row) for row in catalog_crud.list_exercises(db, topic, category)]
    lookup = _lookup(request, db, current_user)

    items = []
    for exercise in exercises:
        entry = lookup.get(str(exercise["id"])) or {}
        items.append(
            ExerciseListItem(
                exercise=exercise,
                completed=bool(entry.get("completed")),
                stars=int(entry.get("stars") or 0),
                best_score=entry.get("score"),
            )
        )

    return ExerciseList(
        topic=TopicRead.model_validate(topic_row),
        category=CategoryRead.model_validate(category_row) if category_row else None,
        exercises=items,
        tests_unlocked={level: progress_service.is_test_unlocked(exercises, level, lookup) for level in DIFFICULTIES},
    )


@router.get("/exercises/{exercise_id}", response_model=dict)
def get_exercise(exercise_id: str, db: Session = Depends(get_db)):
    exercise = catalog_crud.get_exercise(db, exercise_id)
    if not exercise:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exercise not found")
    return catalog_crud.exercise_to_dict(exercise)
