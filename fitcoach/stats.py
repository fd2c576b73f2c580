# stats.py: dashboard aggregation over a trainer's students and routines
import pandas as pd

STUDENT_STATUSES = ["onboarding", "active", "paused", "inactive"]
ROUTINE_STATUSES = ["assigned", "in_progress", "completed", "cancelled"]

STUDENT_COLUMNS = ["id", "full_name", "status"]
ROUTINE_COLUMNS = ["id", "student_id", "status"]

def _frame(rows, columns) -> pd.DataFrame:
    return pd.DataFrame([tuple(r) for r in rows], columns=columns)

def _status_counts(df: pd.DataFrame, statuses) -> dict:
    counts = df["status"].value_counts().reindex(statuses, fill_value=0)
    return {status: int(counts[status]) for status in statuses}

def _pct(part, whole) -> float:
    return round(float(part) / float(whole) * 100, 1) if whole else 0.0

def student_progress(students: pd.DataFrame, routines: pd.DataFrame) -> pd.DataFrame:
    """Completed routines as a share of each student's non-cancelled routines."""
    table = students[STUDENT_COLUMNS].copy()
    live = routines[routines["status"] != "cancelled"]
    assigned = live.groupby("student_id").size()
    completed = live[live["status"] == "completed"].groupby("student_id").size()
    table["assigned"] = table["id"].map(assigned).fillna(0).astype(int)
    table["completed"] = table["id"].map(completed).fillna(0).astype(int)
    ratio = table["completed"] / table["assigned"].where(table["assigned"] > 0)
    table["progress"] = (ratio * 100).fillna(0.0).round(1)
    return table.sort_values(["progress", "full_name"], ascending=[False, True])

def build_dashboard_stats(student_rows, routine_rows, exercise_count: int = 0, workout_count: int = 0) -> dict:
    students = _frame(student_rows, STUDENT_COLUMNS)
    routines = _frame(routine_rows, ROUTINE_COLUMNS)

    routine_counts = _status_counts(routines, ROUTINE_STATUSES)
    not_cancelled = len(routines) - routine_counts["cancelled"]

    progress = [
        {
            "student_id": int(row.id),
            "full_name": row.full_name,
            "status": row.status,
            "assigned": int(row.assigned),
            "completed": int(row.completed),
            "progress": float(row.progress),
        }
        for row in student_progress(students, routines).itertuples(index=False)
    ]

    return {
        "students": {
            "total": int(len(students)),
            "by_status": _status_counts(students, STUDENT_STATUSES),
        },
        "routines": {
            "total": int(len(routines)),
            "by_status": routine_counts,
            "completion_rate": _pct(routine_counts["completed"], not_cancelled),
        },
        "student_progress": progress,
        "exercises": int(exercise_count),
        "workouts": int(workout_count),
    }
