"""Subscription tiers, their limits, and the usage checks built on them."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import Student, Trainer

logger = logging.getLogger("fitcoach")


class Tier(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value: Optional[str], default: "Tier" = None) -> "Tier":
        """Empty values fall back to ``default`` (free unless given); unknown names raise ValueError."""
        if not value:
            return default or cls.FREE
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown subscription tier: {value!r}")


@dataclass(frozen=True)
class TierLimits:
    max_students: int
    max_trainers: int
    features: frozenset


TIER_LIMITS = {
    Tier.FREE: TierLimits(
        max_students=1,
        max_trainers=1,
        features=frozenset({"basic_workouts", "basic_exercises"}),
    ),
    Tier.PRO: TierLimits(
        max_students=100,
        max_trainers=1,
        features=frozenset({"advanced_workouts", "advanced_exercises", "analytics", "chat"}),
    ),
    Tier.ENTERPRISE: TierLimits(
        max_students=1000,
        max_trainers=5,
        features=frozenset({"all_features", "white_label", "api_access"}),
    ),
}

WILDCARD_FEATURE = "all_features"


def limits_for(tier: Tier) -> TierLimits:
    return TIER_LIMITS[tier]


def trainer_tier(trainer: Optional[Trainer]) -> Tier:
    if trainer is None:
        return Tier.FREE
    try:
        return Tier.parse(trainer.subscription_tier)
    except ValueError:
        logger.warning(f"Trainer {trainer.id} has unknown tier {trainer.subscription_tier!r}, treating as free")
        return Tier.FREE


def has_feature(tier: Tier, feature: str) -> bool:
    features = limits_for(tier).features
    return feature in features or WILDCARD_FEATURE in features


def count_students(db: Session, trainer_id: int) -> int:
    return db.query(func.count(Student.id)).filter(Student.trainer_id == trainer_id).scalar() or 0


def count_sub_trainers(db: Session, trainer_id: int) -> int:
    return db.query(func.count(Trainer.id)).filter(Trainer.parent_trainer_id == trainer_id).scalar() or 0


def can_add_student(db: Session, trainer_id: int) -> bool:
    trainer = db.get(Trainer, trainer_id)
    if trainer is None:
        return False
    tier = trainer_tier(trainer)
    return count_students(db, trainer.id) < limits_for(tier).max_students


def can_add_trainer(db: Session, trainer_id: int) -> bool:
    trainer = db.get(Trainer, trainer_id)
    # team members share the owner's seats and cannot open their own
    if trainer is None or trainer.parent_trainer_id is not None:
        return False
    tier = trainer_tier(trainer)
    if tier is not Tier.ENTERPRISE:
        return False
    return count_sub_trainers(db, trainer.id) < limits_for(tier).max_trainers


RESOURCE_CHECKS = {
    "student": can_add_student,
    "trainer": can_add_trainer,
}
