from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional

from .db import get_db
from .deps import get_current_trainer
from .models import Exercise, Trainer, WorkoutExercise, WorkoutTemplate

router = APIRouter(prefix="/workouts", tags=["workouts"])

class WorkoutExerciseIn(BaseModel):
    exercise_id: int
    sets: int = Field(3, ge=1)
    reps: str = "10"
    rest_seconds: int = Field(60, ge=0)
    notes: Optional[str] = None

class WorkoutIn(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=0)
    difficulty: Optional[str] = None
    category: Optional[str] = None
    is_public: bool = False
    exercises: List[WorkoutExerciseIn] = []

class WorkoutUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=0)
    difficulty: Optional[str] = None
    category: Optional[str] = None
    is_public: Optional[bool] = None
    exercises: Optional[List[WorkoutExerciseIn]] = None

class ReorderIn(BaseModel):
    workout_exercise_ids: List[int]

def workout_out(w: WorkoutTemplate) -> dict:
    return {
        "id": w.id,
        "trainer_id": w.trainer_id,
        "name": w.name,
        "description": w.description,
        "duration_minutes": w.duration_minutes,
        "difficulty": w.difficulty,
        "category": w.category,
        "is_public": w.is_public,
        "exercises": [
            {
                "id": we.id,
                "exercise_id": we.exercise_id,
                "name": we.exercise.name if we.exercise else None,
                "muscle_group": we.exercise.muscle_group if we.exercise else None,
                "sets": we.sets,
                "reps": we.reps,
                "rest_seconds": we.rest_seconds,
                "notes": we.notes,
                "order_index": we.order_index,
            }
            for we in w.exercises
        ],
    }

def visible_workout(db: Session, trainer: Trainer, workout_id: int) -> WorkoutTemplate:
    workout = db.get(WorkoutTemplate, workout_id)
    if not workout or (workout.trainer_id != trainer.id and not workout.is_public):
        raise HTTPException(status_code=404, detail="Workout not found")
    return workout

def owned_workout(db: Session, trainer: Trainer, workout_id: int) -> WorkoutTemplate:
    workout = visible_workout(db, trainer, workout_id)
    if workout.trainer_id != trainer.id:
        raise HTTPException(status_code=403, detail="Only the owner can change this workout")
    return workout

def build_exercise_rows(db: Session, trainer: Trainer, items: List[WorkoutExerciseIn]) -> List[WorkoutExercise]:
    """Turn the builder's list into rows numbered 1..n in the order given."""
    ids = {item.exercise_id for item in items}
    if ids:
        found = db.query(Exercise.id).filter(
            Exercise.id.in_(ids),
            or_(Exercise.trainer_id == trainer.id, Exercise.is_public.is_(True)),
        ).all()
        missing = ids - {row[0] for row in found}
        if missing:
            raise HTTPException(status_code=400, detail=f"Unknown exercises: {sorted(missing)}")
    return [
        WorkoutExercise(
            exercise_id=item.exercise_id,
            sets=item.sets,
            reps=item.reps,
            rest_seconds=item.rest_seconds,
            notes=item.notes,
            order_index=position + 1,
        )
        for position, item in enumerate(items)
    ]

@router.get("")
def list_workouts(category: Optional[str] = None, difficulty: Optional[str] = None,
                  trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    query = db.query(WorkoutTemplate).filter(
        or_(WorkoutTemplate.trainer_id == trainer.id, WorkoutTemplate.is_public.is_(True))
    )
    if category:
        query = query.filter(WorkoutTemplate.category == category)
    if difficulty:
        query = query.filter(WorkoutTemplate.difficulty == difficulty)
    workouts = query.order_by(WorkoutTemplate.created_at.desc(), WorkoutTemplate.id.desc()).all()
    return [workout_out(w) for w in workouts]

@router.post("", status_code=201)
def create_workout(payload: WorkoutIn, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    data = payload.model_dump(exclude={"exercises"})
    workout = WorkoutTemplate(trainer_id=trainer.id, **data)
    workout.exercises = build_exercise_rows(db, trainer, payload.exercises)
    db.add(workout)
    db.commit()
    db.refresh(workout)
    return workout_out(workout)

@router.get("/{workout_id}")
def get_workout(workout_id: int, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    return workout_out(visible_workout(db, trainer, workout_id))

@router.patch("/{workout_id}")
def update_workout(workout_id: int, payload: WorkoutUpdate, trainer: Trainer = Depends(get_current_trainer),
                   db: Session = Depends(get_db)):
    workout = owned_workout(db, trainer, workout_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude={"exercises"}).items():
        if value is None and field in ("name", "is_public"):
            continue
        setattr(workout, field, value)
    if payload.exercises is not None:
        workout.exercises = build_exercise_rows(db, trainer, payload.exercises)
    db.commit()
    db.refresh(workout)
    return workout_out(workout)

@router.put("/{workout_id}/order")
def reorder_workout(workout_id: int, payload: ReorderIn, trainer: Trainer = Depends(get_current_trainer),
                    db: Session = Depends(get_db)):
    workout = owned_workout(db, trainer, workout_id)
    rows = {we.id: we for we in workout.exercises}
    ids = payload.workout_exercise_ids
    if len(ids) != len(rows) or set(ids) != set(rows):
        raise HTTPException(status_code=400, detail="Order must list every exercise of the workout exactly once")
    for position, row_id in enumerate(ids):
        rows[row_id].order_index = position + 1
    db.commit()
    db.refresh(workout)
    return workout_out(workout)

@router.delete("/{workout_id}")
def delete_workout(workout_id: int, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    workout = owned_workout(db, trainer, workout_id)
    db.delete(workout)
    db.commit()
    return {"ok": True}
