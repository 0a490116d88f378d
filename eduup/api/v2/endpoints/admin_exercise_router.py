"""Exercise editor endpoints, restricted to superusers."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from eduup.api.v2.dependencies import get_current_admin, get_db
from eduup.core.config import settings
from eduup.crud import catalog_crud
from eduup.models.catalog.exercise_model import EXERCISE_TYPES, Exercise
from eduup.models.user.user_model import User
from eduup.schemas.admin.admin_schema import AdminExerciseRead, ExerciseForm
from eduup.services.exercise_templates import ExercisePayloadError, prepare_exercise_values, template_for

router = APIRouter()
logger = logging.getLogger(__name__)


def _values_or_400(form: ExerciseForm) -> dict:
    try:
        return prepare_exercise_values(form.model_dump())
    except ExercisePayloadError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _check_references(db: Session, values: dict) -> None:
    if values["topic_id"] and not catalog_crud.get_topic(db, values["topic_id"]):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown topic")
    if values["category_id"] and not catalog_crud.get_category(db, values["category_id"]):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown category")


@router.get("/exercises", response_model=List[AdminExerciseRead], summary="Poslední úlohy")
def list_recent_exercises(
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return catalog_crud.list_recent_exercises(db, settings.ADMIN_EXERCISE_LIST_LIMIT)


@router.get("/templates", response_model=dict, summary="Výchozí payload podle typu")
def list_templates(admin: User = Depends(get_current_admin)):
    return {exercise_type: template_for(exercise_type) for exercise_type in EXERCISE_TYPES}


@router.get("/templates/{exercise_type}", response_model=dict)
def read_template(exercise_type: str, admin: User = Depends(get_current_admin)):
    return template_for(exercise_type)


@router.post("/exercises", response_model=AdminExerciseRead, status_code=status.HTTP_201_CREATED)
def create_exercise(
    form: ExerciseForm,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    values = _values_or_400(form)
    _check_references(db, values)

    exercise = Exercise(created_by=admin.id, **values)
    db.add(exercise)
    db.commit()
    db.refresh(exercise)
    logger.info(f"ADMIN: exercise {exercise.id} ({exercise.type}) created by {admin.id}")
    return exercise


@router.put("/exercises/{exercise_id}", response_model=AdminExerciseRead)
def update_exercise(
    exercise_id: str,
    form: ExerciseForm,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    exercise = catalog_crud.get_exercise(db, exercise_id)
    if not exercise:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exercise not found")

    values = _values_or_400(form)
    _check_references(db, values)
    for field, value in values.items():
        setattr(exercise, field, value)

    db.commit()
    db.refresh(exercise)
    logger.info(f"ADMIN: exercise {exercise.id} updated by {admin.id}")
    return exercise


@router.delete("/exercises/{exercise_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_exercise(
    exercise_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    exercise = catalog_crud.get_exercise(db, exercise_id)
    if not exercise:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exercise not found")
    db.delete(exercise)
    db.commit()
    logger.info(f"ADMIN: exercise {exercise_id} deleted by {admin.id}")
