from fastapi import APIRouter, HTTPException, Depends, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
import jwt, datetime as dt, os, hashlib, secrets, logging
from .db import get_db
from .deps import get_current_user
from .models import User, Trainer, PasswordResetToken
from . import mail

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "12"))
APP_URL = os.getenv("APP_URL", "")
RESET_TOKEN_TTL_HOURS = 1

pwd_context = CryptContext(schemes=["pbkdf2_sha256","bcrypt_sha256","bcrypt"], default="pbkdf2_sha256", deprecated="auto")
logger = logging.getLogger("fitcoach")

router = APIRouter(prefix="/auth", tags=["auth"])

class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: Optional[str] = None

class ForgotPasswordIn(BaseModel):
    email: EmailStr

class ResetPasswordIn(BaseModel):
    token: str
    password: str = Field(min_length=8)

def hash_password(password: str) -> str:
    return pwd_context.hash(password[:72])

def temporary_password() -> str:
    return secrets.token_urlsafe(16)

def _digest(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()

def _aware(value: dt.datetime) -> dt.datetime:
    # SQLite hands datetimes back without tzinfo
    return value if value.tzinfo else value.replace(tzinfo=dt.timezone.utc)

def public_base_url(request: Request) -> str:
    return (APP_URL or str(request.base_url)).rstrip("/")

def issue_reset_token(db: Session, user: User) -> str:
    """Create a single-use reset token for ``user``; earlier unused tokens stop working. Caller commits."""
    now = dt.datetime.now(dt.timezone.utc)
    db.query(PasswordResetToken).filter(
        PasswordResetToken.user_id == user.id,
        PasswordResetToken.used_at.is_(None),
    ).update({PasswordResetToken.used_at: now}, synchronize_session=False)
    raw = secrets.token_urlsafe(32)
    db.add(PasswordResetToken(
        user_id=user.id,
        token_digest=_digest(raw),
        expires_at=now + dt.timedelta(hours=RESET_TOKEN_TTL_HOURS),
    ))
    return raw

def reset_url_for(base_url: str, raw_token: str) -> str:
    return f"{base_url}/auth/reset-password?token={raw_token}"

@router.post("/register")
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(email=email, password_hash=hash_password(payload.password), role="trainer", full_name=payload.full_name)
    db.add(user)
    db.flush()
    db.add(Trainer(id=user.id, email=email, full_name=payload.full_name, subscription_tier="free", subscription_status="inactive"))
    db.commit()
    logger.info(f"Registered trainer {user.id}")
    return {"ok": True, "id": user.id}

@router.post("/login")
def login(form: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == form.username.lower()).first()
    if not user or not user.is_active or not pwd_context.verify(form.password[:72], user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    now = dt.datetime.now(dt.timezone.utc)
    token = jwt.encode(
        {"sub": str(user.id), "email": user.email, "role": user.role, "exp": now + dt.timedelta(hours=JWT_EXPIRE_HOURS)},
        JWT_SECRET,
        algorithm="HS256",
    )
    return {"access_token": token, "token_type": "bearer"}

@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"id": user.id, "email": user.email, "role": user.role, "full_name": user.full_name}

@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordIn, request: Request, db: Session = Depends(get_db)):
    # Same answer whether or not the account exists
    response = {"ok": True, "message": "If an account exists with that email, we've sent a reset link."}
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user:
        return response
    raw = issue_reset_token(db, user)
    db.commit()
    mail.send_password_reset_email(user.email, reset_url_for(public_base_url(request), raw))
    return response

@router.post("/reset-password")
def reset_password(payload: ResetPasswordIn, db: Session = Depends(get_db)):
    record = db.query(PasswordResetToken).filter(
        PasswordResetToken.token_digest == _digest(payload.token),
        PasswordResetToken.used_at.is_(None),
    ).first()
    now = dt.datetime.now(dt.timezone.utc)
    if not record or _aware(record.expires_at) <= now:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    user = db.get(User, record.user_id)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    user.password_hash = hash_password(payload.password)
    record.used_at = now
    db.commit()
    logger.info(f"Password reset for user {user.id}")
    return {"ok": True}
