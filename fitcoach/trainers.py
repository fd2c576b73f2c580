from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session
from typing import Optional
import logging

from .db import get_db
from .deps import get_current_trainer
from .models import Trainer, User
from .entitlements import can_add_trainer, trainer_tier
from .auth import hash_password, temporary_password, issue_reset_token, public_base_url, reset_url_for
from . import mail

router = APIRouter(prefix="/trainers", tags=["trainers"])
logger = logging.getLogger("fitcoach")

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None

class TeamMemberIn(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None

def trainer_out(t: Trainer) -> dict:
    return {
        "id": t.id,
        "email": t.email,
        "full_name": t.full_name,
        "subscription_tier": trainer_tier(t).value,
        "subscription_status": t.subscription_status,
        "parent_trainer_id": t.parent_trainer_id,
    }

@router.get("/me")
def my_profile(trainer: Trainer = Depends(get_current_trainer)):
    return trainer_out(trainer)

@router.patch("/me")
def update_profile(payload: ProfileUpdate, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    if payload.full_name is not None:
        trainer.full_name = payload.full_name
        user = db.get(User, trainer.id)
        if user:
            user.full_name = payload.full_name
    db.commit()
    db.refresh(trainer)
    return trainer_out(trainer)

@router.get("/team")
def list_team(trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    members = db.query(Trainer).filter(Trainer.parent_trainer_id == trainer.id).order_by(Trainer.id).all()
    return [trainer_out(t) for t in members]

@router.post("/team", status_code=201)
def add_team_member(payload: TeamMemberIn, request: Request, trainer: Trainer = Depends(get_current_trainer),
                    db: Session = Depends(get_db)):
    """Enterprise accounts only: create a sub-trainer sharing the owner's plan."""
    if not can_add_trainer(db, trainer.id):
        tier = trainer_tier(trainer)
        logger.info(f"Trainer {trainer.id} on {tier.value} cannot add team members")
        raise HTTPException(status_code=403, detail=f"Trainer limit reached for the {tier.value} plan")
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(email=email, password_hash=hash_password(temporary_password()), role="trainer", full_name=payload.full_name)
    db.add(user)
    db.flush()
    member = Trainer(
        id=user.id,
        email=email,
        full_name=payload.full_name,
        subscription_tier=trainer.subscription_tier,
        subscription_status=trainer.subscription_status,
        parent_trainer_id=trainer.id,
    )
    db.add(member)
    raw_token = issue_reset_token(db, user)
    db.commit()
    db.refresh(member)

    mail.send_invite_email(email, payload.full_name or email, trainer.full_name or "",
                           reset_url_for(public_base_url(request), raw_token))
    logger.info(f"Trainer {trainer.id} added team member {member.id}")
    return trainer_out(member)
