from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Literal, Optional
import datetime as dt, logging

from .db import get_db
from .deps import get_current_trainer
from .models import Routine, Student, Trainer
from .students import get_owned_student
from .workouts import visible_workout

router = APIRouter(prefix="/routines", tags=["routines"])
logger = logging.getLogger("fitcoach")

RoutineStatus = Literal["assigned", "in_progress", "completed", "cancelled"]

# completed and cancelled are terminal
TRANSITIONS = {
    "assigned": {"in_progress", "completed", "cancelled"},
    "in_progress": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

class RoutineIn(BaseModel):
    student_id: int
    workout_template_id: int
    assigned_date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None
    notes: Optional[str] = None

class RoutineUpdate(BaseModel):
    status: Optional[RoutineStatus] = None
    due_date: Optional[dt.date] = None
    notes: Optional[str] = None

def can_transition(current: str, new: str) -> bool:
    return new == current or new in TRANSITIONS.get(current, set())

def routine_out(r: Routine, student: Optional[Student] = None) -> dict:
    return {
        "id": r.id,
        "student_id": r.student_id,
        "student_name": student.full_name if student else None,
        "workout_template_id": r.workout_template_id,
        "assigned_date": r.assigned_date.isoformat() if r.assigned_date else None,
        "due_date": r.due_date.isoformat() if r.due_date else None,
        "status": r.status,
        "notes": r.notes,
    }

def owned_routine(db: Session, trainer: Trainer, routine_id: int) -> Routine:
    routine = db.get(Routine, routine_id)
    if not routine or routine.trainer_id != trainer.id:
        raise HTTPException(status_code=404, detail="Routine not found")
    return routine

@router.get("")
def list_routines(status: Optional[RoutineStatus] = None, student_id: Optional[int] = None,
                  trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    query = db.query(Routine, Student).join(Student, Student.id == Routine.student_id).filter(Routine.trainer_id == trainer.id)
    if status:
        query = query.filter(Routine.status == status)
    if student_id is not None:
        query = query.filter(Routine.student_id == student_id)
    rows = query.order_by(Routine.created_at.desc(), Routine.id.desc()).all()
    return [routine_out(r, s) for r, s in rows]

@router.post("", status_code=201)
def assign_routine(payload: RoutineIn, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    student = get_owned_student(db, trainer, payload.student_id)
    workout = visible_workout(db, trainer, payload.workout_template_id)
    routine = Routine(
        trainer_id=trainer.id,
        student_id=student.id,
        workout_template_id=workout.id,
        assigned_date=payload.assigned_date or dt.date.today(),
        due_date=payload.due_date,
        notes=payload.notes,
        status="assigned",
    )
    db.add(routine)
    db.commit()
    db.refresh(routine)
    logger.info(f"Trainer {trainer.id} assigned workout {workout.id} to student {student.id}")
    return routine_out(routine, student)

@router.get("/{routine_id}")
def get_routine(routine_id: int, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    routine = owned_routine(db, trainer, routine_id)
    return routine_out(routine, db.get(Student, routine.student_id))

@router.patch("/{routine_id}")
def update_routine(routine_id: int, payload: RoutineUpdate, trainer: Trainer = Depends(get_current_trainer),
                   db: Session = Depends(get_db)):
    routine = owned_routine(db, trainer, routine_id)
    changes = payload.model_dump(exclude_unset=True)
    new_status = changes.pop("status", None)
    if new_status is not None:
        if not can_transition(routine.status, new_status):
            raise HTTPException(status_code=409, detail=f"Cannot move routine from {routine.status} to {new_status}")
        routine.status = new_status
    for field, value in changes.items():
        setattr(routine, field, value)
    db.commit()
    db.refresh(routine)
    return routine_out(routine, db.get(Student, routine.student_id))

@router.delete("/{routine_id}")
def delete_routine(routine_id: int, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    routine = owned_routine(db, trainer, routine_id)
    db.delete(routine)
    db.commit()
    return {"ok": True}
