from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from .db import get_db
from .models import User, Trainer
from .entitlements import has_feature, trainer_tier
import os, jwt, logging

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
logger = logging.getLogger("fitcoach")

def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=["HS256"])
        uid = int(payload.get("sub"))
    except (jwt.PyJWTError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db.get(User, uid)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")
    return user

def get_current_trainer(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Trainer:
    if user.role != "trainer":
        raise HTTPException(status_code=403, detail="Only trainers can access this resource")
    trainer = db.get(Trainer, user.id)
    if not trainer:
        raise HTTPException(status_code=403, detail="Trainer profile not found")
    return trainer

def require_feature(feature: str):
    def dependency(trainer: Trainer = Depends(get_current_trainer)) -> Trainer:
        tier = trainer_tier(trainer)
        if not has_feature(tier, feature):
            logger.info(f"Trainer {trainer.id} on {tier.value} denied feature {feature}")
            raise HTTPException(status_code=403, detail=f"The {tier.value} plan does not include {feature}")
        return trainer
    return dependency
