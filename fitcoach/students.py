from fastapi import APIRouter, Depends, HTTPException, Request, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, ValidationError
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Literal, Optional
import datetime as dt, logging

from .db import get_db
from .deps import get_current_trainer
from .models import Student, Trainer, User
from .entitlements import can_add_student, trainer_tier
from .auth import hash_password, temporary_password, issue_reset_token, public_base_url, reset_url_for
from . import mail

router = APIRouter(prefix="/students", tags=["students"])
logger = logging.getLogger("fitcoach")

StudentStatus = Literal["onboarding", "active", "paused", "inactive"]
REQUIRED_FIELDS = {"full_name", "email", "is_active", "status"}
EMAIL_ADAPTER = TypeAdapter(EmailStr)

class StudentIn(BaseModel):
    full_name: str = Field(min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    birth_date: Optional[dt.date] = None
    gender: Optional[str] = None
    goal: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    status: StudentStatus = "onboarding"

class StudentUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    birth_date: Optional[dt.date] = None
    gender: Optional[str] = None
    goal: Optional[str] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None
    status: Optional[StudentStatus] = None

class InviteIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[dt.date] = Field(None, alias="birthDate")
    gender: Optional[str] = None
    goal: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = Field(True, alias="isActive")

def student_out(s: Student) -> dict:
    return {
        "id": s.id,
        "trainer_id": s.trainer_id,
        "user_id": s.user_id,
        "full_name": s.full_name,
        "email": s.email,
        "phone": s.phone,
        "birth_date": s.birth_date.isoformat() if s.birth_date else None,
        "gender": s.gender,
        "goal": s.goal,
        "notes": s.notes,
        "is_active": s.is_active,
        "status": s.status,
        "created_at": s.created_at.isoformat() if s.created_at else None,
    }

def get_owned_student(db: Session, trainer: Trainer, student_id: int) -> Student:
    student = db.get(Student, student_id)
    if not student or student.trainer_id != trainer.id:
        raise HTTPException(status_code=404, detail="Student not found")
    return student

@router.get("")
def list_students(status: Optional[StudentStatus] = None, q: Optional[str] = None,
                  trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    query = db.query(Student).filter(Student.trainer_id == trainer.id)
    if status:
        query = query.filter(Student.status == status)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(or_(Student.full_name.ilike(like), Student.email.ilike(like)))
    return [student_out(s) for s in query.order_by(Student.created_at.desc(), Student.id.desc()).all()]

@router.post("", status_code=201)
def create_student(payload: StudentIn, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    if not can_add_student(db, trainer.id):
        tier = trainer_tier(trainer)
        logger.info(f"Trainer {trainer.id} hit the {tier.value} student limit")
        raise HTTPException(status_code=403, detail=f"Student limit reached for the {tier.value} plan")
    student = Student(trainer_id=trainer.id, **payload.model_dump())
    student.email = student.email.lower()
    db.add(student)
    db.commit()
    db.refresh(student)
    return student_out(student)

@router.post("/invite")
def invite_student(payload: InviteIn, request: Request, x_trainer_id: Optional[str] = Header(None),
                   db: Session = Depends(get_db)):
    """Create a student login plus profile in one transaction, then mail a set-password link."""
    if not x_trainer_id:
        return JSONResponse({"error": "Trainer ID is required"}, status_code=400)
    try:
        trainer_id = int(x_trainer_id)
    except ValueError:
        return JSONResponse({"error": "Trainer ID is invalid"}, status_code=400)
    if not payload.name or not payload.name.strip() or not (payload.email or "").strip():
        return JSONResponse({"error": "Name and email are required"}, status_code=400)
    try:
        email = EMAIL_ADAPTER.validate_python(payload.email.strip()).lower()
    except ValidationError:
        return JSONResponse({"error": f"Invalid email address: {payload.email}"}, status_code=400)

    name = payload.name.strip()
    try:
        user = User(email=email, password_hash=hash_password(temporary_password()), role="student", full_name=name)
        db.add(user)
        db.flush()
        student = Student(
            trainer_id=trainer_id,
            user_id=user.id,
            full_name=name,
            email=email,
            phone=payload.phone,
            birth_date=payload.birth_date,
            gender=payload.gender,
            goal=payload.goal,
            notes=payload.notes,
            is_active=payload.is_active,
            status="onboarding",
        )
        db.add(student)
        db.flush()
        raw_token = issue_reset_token(db, user)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        message = str(getattr(e, "orig", None) or e)
        logger.error(f"Error inviting student {email} for trainer {trainer_id}: {message}")
        return JSONResponse({"error": message}, status_code=500)

    trainer = db.get(Trainer, trainer_id)
    sent = mail.send_invite_email(email, name, trainer.full_name if trainer else "",
                                  reset_url_for(public_base_url(request), raw_token))
    if not sent:
        logger.warning(f"Invite email for student {student.id} was not delivered")
    logger.info(f"Trainer {trainer_id} invited student {student.id}")
    return {
        "message": "Student invited successfully",
        "student": {"id": student.id, "user_id": user.id, "email": email, "name": name, "status": student.status},
    }

@router.get("/{student_id}")
def get_student(student_id: int, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    return student_out(get_owned_student(db, trainer, student_id))

@router.patch("/{student_id}")
def update_student(student_id: int, payload: StudentUpdate, trainer: Trainer = Depends(get_current_trainer),
                   db: Session = Depends(get_db)):
    student = get_owned_student(db, trainer, student_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        if field == "email":
            value = value.lower()
        setattr(student, field, value)
    db.commit()
    db.refresh(student)
    return student_out(student)

@router.delete("/{student_id}")
def delete_student(student_id: int, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    student = get_owned_student(db, trainer, student_id)
    db.delete(student)
    db.commit()
    return {"ok": True}
