from fastapi import APIRouter, Depends, Request, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session
from .deps import get_current_trainer
from .db import get_db
from .models import Trainer
from .entitlements import Tier, RESOURCE_CHECKS, limits_for, trainer_tier, can_add_student, can_add_trainer
from .auth import public_base_url
import os, stripe, logging

router = APIRouter(prefix="/billing", tags=["billing"])
logger = logging.getLogger("fitcoach")

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_PRICES = {
    Tier.PRO: os.getenv("STRIPE_PRICE_PRO"),
    Tier.ENTERPRISE: os.getenv("STRIPE_PRICE_ENTERPRISE"),
}
if STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY

class CheckoutIn(BaseModel):
    tier: str = Tier.PRO.value

@router.get("/status")
def status(trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    tier = trainer_tier(trainer)
    limits = limits_for(tier)
    return {
        "tier": tier.value,
        "subscription_status": trainer.subscription_status,
        "is_active": trainer.subscription_status == "active",
        "limits": {"max_students": limits.max_students, "max_trainers": limits.max_trainers},
        "features": sorted(limits.features),
        "can_add_student": can_add_student(db, trainer.id),
        "can_add_trainer": can_add_trainer(db, trainer.id),
    }

@router.get("/entitlements/{resource}")
def entitlement(resource: str, trainer: Trainer = Depends(get_current_trainer), db: Session = Depends(get_db)):
    check = RESOURCE_CHECKS.get(resource)
    if check is None:
        raise HTTPException(status_code=404, detail=f"Unknown resource: {resource}")
    return {"resource": resource, "allowed": check(db, trainer.id)}

@router.post("/create-checkout-session")
def create_checkout_session(payload: CheckoutIn, request: Request, trainer: Trainer = Depends(get_current_trainer)):
    try:
        tier = Tier.parse(payload.tier)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    price_id = STRIPE_PRICES.get(tier)
    if not STRIPE_SECRET_KEY or not price_id:
        raise HTTPException(status_code=400, detail="Stripe not configured")
    origin = request.headers.get("origin") or public_base_url(request)
    try:
        session = stripe.checkout.Session.create(
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=origin + "/onboarding/complete?success=true",
            cancel_url=origin + "/onboarding/payment?canceled=true",
            customer_email=trainer.email,
            client_reference_id=str(trainer.id),
            metadata={"tier": tier.value},
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe checkout failed for trainer {trainer.id}: {e}")
        raise HTTPException(status_code=502, detail=f"Stripe error: {e}")
    logger.info(f"Checkout session {session.id} created for trainer {trainer.id} ({tier.value})")
    return {"checkout_url": session.url}
