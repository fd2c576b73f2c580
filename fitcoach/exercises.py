from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional

from .db import get_db
from .deps import get_current_trainer
from .models import Exercise, Trainer

router = APIRouter(prefix="/exercises", tags=["exercises"])

class ExerciseIn(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    instructions: Optional[str] = None
    category: Optional[str] = None
    equipment: Optional[str] = None
    difficulty: Optional[str] = None
    muscle_group: Optional[str] = None
    video_url: Optional[str] = None
    image_url: Optional[str] = None
    is_public: bool = False

class ExerciseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    instructions: Optional[str] = None
    category: Optional[str] = None
    equipment: Optional[str] = None
    difficulty: Optional[str] = None
    muscle_group: Optional[str] = None
    video_url: Optional[str] = None
    image_url: Optional[str] = None
    is_public: Optional[bool] = None

def exercise_out(e: Exercise) -> dict:
    return {
        "id": e.id,
        "trainer_id": e.trainer_id,
        "name": e.name,
        "description": e.description,
        "instructions": e.instructions,
        "category": e.category,
        "equipment": e.equipment,
        "difficulty": e.difficulty,
        "muscle_group": e.muscle_group,
        "video_url": e.video_url,
        "image_url": e.image_url,
        "is_public": e.is_public,
    }

def visible_exercise(db: Session, trainer: Trainer, exercise_id: int) -> Exercise:
    exercise = db.get(Exercise, exercise_id)
    if not exercise or (exercise.trainer_id != trainer.id and not exercise.is_public):
        raise HTTPException(status_code=404, detail="Exercise not found")
    return exercise

def owned_exercise(db: Session, trainer: Trainer, exercise_id: int) -> Exercise:
    exercise = visible_exercise(db, trainer, exercise_id)
    if exercise.trainer_id != trainer.id:
        raise HTTPException(status_code=403, detail="Only the owner can change this exercise")
    return exercise

@router.get("")
def list_exercises(category: Optional[str] = None, muscle_group: Optional[str] = None,
                   difficulty: Optional[str] = None, q: Optional[str] = None,
                   trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    query = db.query(Exercise).filter(or_(Exercise.trainer_id == trainer.id, Exercise.is_public.is_(True)))
    if category:
        query = query.filter(Exercise.category == category)
    if muscle_group:
        query = query.filter(Exercise.muscle_group == muscle_group)
    if difficulty:
        query = query.filter(Exercise.difficulty == difficulty)
    if q:
        query = query.filter(Exercise.name.ilike(f"%{q.strip()}%"))
    return [exercise_out(e) for e in query.order_by(Exercise.name).all()]

@router.post("", status_code=201)
def create_exercise(payload: ExerciseIn, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    exercise = Exercise(trainer_id=trainer.id, **payload.model_dump())
    db.add(exercise)
    db.commit()
    db.refresh(exercise)
    return exercise_out(exercise)

@router.get("/{exercise_id}")
def get_exercise(exercise_id: int, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    return exercise_out(visible_exercise(db, trainer, exercise_id))

@router.patch("/{exercise_id}")
def update_exercise(exercise_id: int, payload: ExerciseUpdate, trainer: Trainer = Depends(get_current_trainer),
                    db: Session = Depends(get_db)):
    exercise = owned_exercise(db, trainer, exercise_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "is_public"):
            continue
        setattr(exercise, field, value)
    db.commit()
    db.refresh(exercise)
    return exercise_out(exercise)

@router.delete("/{exercise_id}")
def delete_exercise(exercise_id: int, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    exercise = owned_exercise(db, trainer, exercise_id)
    db.delete(exercise)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Exercise is used by a workout")
    return {"ok": True}
