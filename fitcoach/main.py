from fastapi import FastAPI, Depends
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func
from sqlalchemy.orm import Session

from dotenv import load_dotenv
load_dotenv()

import logging, os

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from .db import init_db, get_db
from .deps import require_feature
from .models import Exercise, Routine, Student, Trainer, WorkoutTemplate
from . import auth, billing, webhooks, students, trainers, exercises, workouts, routines, stats

app = FastAPI(title="FitCoach")
init_db()

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
def health():
    return JSONResponse({"ok": True})

app.include_router(auth.router)
app.include_router(billing.router)
app.include_router(webhooks.router)
app.include_router(students.router)
app.include_router(trainers.router)
app.include_router(exercises.router)
app.include_router(workouts.router)
app.include_router(routines.router)

@app.get("/dashboard/stats")
def dashboard_stats(trainer: Trainer = Depends(require_feature("analytics")), db: Session = Depends(get_db)):
    student_rows = db.query(Student.id, Student.full_name, Student.status).filter(Student.trainer_id == trainer.id).all()
    routine_rows = db.query(Routine.id, Routine.student_id, Routine.status).filter(Routine.trainer_id == trainer.id).all()
    exercise_count = db.query(func.count(Exercise.id)).filter(Exercise.trainer_id == trainer.id).scalar()
    workout_count = db.query(func.count(WorkoutTemplate.id)).filter(WorkoutTemplate.trainer_id == trainer.id).scalar()
    return stats.build_dashboard_stats(student_rows, routine_rows, exercise_count or 0, workout_count or 0)
