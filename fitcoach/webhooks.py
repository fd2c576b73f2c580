"""Stripe webhook endpoint and the subscription reconciliation it drives.

Each handler is keyed on a natural key (trainer id for checkouts, Stripe
subscription id for invoices and cancellations), so a redelivered event
converges on the same rows instead of applying twice.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session
from typing import Optional
import datetime as dt, json, logging, os, stripe

from .db import get_db
from .models import Subscription, Trainer, utcnow
from .entitlements import Tier

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger("fitcoach")

STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")


def _set_trainer_plan(db: Session, trainer: Trainer, tier: Tier, status: str):
    trainer.subscription_tier = tier.value
    trainer.subscription_status = status
    # enterprise team members ride on the owner's plan
    db.query(Trainer).filter(Trainer.parent_trainer_id == trainer.id).update(
        {Trainer.subscription_tier: tier.value, Trainer.subscription_status: status},
        synchronize_session=False,
    )


UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_subscription(db: Session, values: dict):
    """Single-statement upsert on subscriptions.trainer_id; concurrent deliveries land on one row."""
    dialect = db.get_bind().dialect.name
    insert = UPSERT_INSERTS.get(dialect)
    if insert is None:
        raise ValueError(f"Subscription upsert not supported on {dialect}")
    stmt = insert(Subscription).values(**values)
    changes = {key: stmt.excluded[key] for key in values if key != "trainer_id"}
    changes["updated_at"] = utcnow()
    db.execute(stmt.on_conflict_do_update(index_elements=[Subscription.trainer_id], set_=changes))


def handle_checkout_completed(db: Session, session: dict):
    trainer_ref = session.get("client_reference_id")
    if not trainer_ref:
        raise ValueError("Missing trainer ID in checkout session")
    trainer = db.get(Trainer, int(trainer_ref))
    if trainer is None:
        raise ValueError(f"Unknown trainer {trainer_ref} in checkout session")
    tier = Tier.parse((session.get("metadata") or {}).get("tier"), default=Tier.PRO)

    sub_id = session.get("subscription")
    upsert_subscription(db, {
        "trainer_id": trainer.id,
        "stripe_customer_id": session.get("customer"),
        "stripe_subscription_id": sub_id,
        "tier": tier.value,
        "status": "active",
    })

    _set_trainer_plan(db, trainer, tier, "active")
    logger.info(f"Trainer {trainer.id} subscribed to {tier.value} ({sub_id})")


def _invoice_subscription_id(invoice: dict) -> Optional[str]:
    # Newer API versions nest the subscription under parent.subscription_details
    sub_id = invoice.get("subscription")
    if not sub_id:
        details = (invoice.get("parent") or {}).get("subscription_details") or {}
        sub_id = details.get("subscription")
    if isinstance(sub_id, dict):
        sub_id = sub_id.get("id")
    return sub_id


def _invoice_period_end(invoice: dict) -> Optional[dt.datetime]:
    lines = (invoice.get("lines") or {}).get("data") or []
    if not lines:
        return None
    end = (lines[0].get("period") or {}).get("end")
    if end is None:
        return None
    return dt.datetime.fromtimestamp(int(end), tz=dt.timezone.utc)


def handle_invoice_paid(db: Session, invoice: dict):
    sub_id = _invoice_subscription_id(invoice)
    if not sub_id:
        return
    sub = db.query(Subscription).filter(Subscription.stripe_subscription_id == sub_id).first()
    if sub is None:
        logger.info(f"Invoice for unknown subscription {sub_id}, ignoring")
        return
    sub.status = "active"
    period_end = _invoice_period_end(invoice)
    if period_end is not None:
        sub.current_period_end = period_end
    logger.info(f"Subscription {sub_id} renewed until {period_end}")


def handle_subscription_deleted(db: Session, subscription: dict):
    sub_id = subscription.get("id")
    sub = db.query(Subscription).filter(Subscription.stripe_subscription_id == sub_id).first() if sub_id else None
    if sub is None:
        logger.info(f"Cancellation for unknown subscription {sub_id}, ignoring")
        return
    sub.status = "canceled"
    trainer = db.get(Trainer, sub.trainer_id)
    if trainer is not None:
        _set_trainer_plan(db, trainer, Tier.FREE, "inactive")
    logger.info(f"Subscription {sub_id} canceled, trainer {sub.trainer_id} back on free")


EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_completed,
    "invoice.payment_succeeded": handle_invoice_paid,
    "customer.subscription.deleted": handle_subscription_deleted,
}


def verify_event(payload: bytes, signature: str, secret: str) -> dict:
    """Check the Stripe signature header and return the decoded event."""
    text = payload.decode("utf-8")
    stripe.WebhookSignature.verify_header(text, signature, secret, stripe.Webhook.DEFAULT_TOLERANCE)
    return json.loads(text)


def reconcile(db: Session, event: dict):
    handler = EVENT_HANDLERS.get(event.get("type"))
    if handler is None:
        logger.debug(f"Ignoring Stripe event {event.get('type')}")
        return
    handler(db, (event.get("data") or {}).get("object") or {})
    db.commit()


@router.post("/stripe")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    signature = request.headers.get("stripe-signature")
    if not signature:
        return JSONResponse({"error": "Missing stripe-signature header"}, status_code=400)
    if not STRIPE_WEBHOOK_SECRET:
        return JSONResponse({"error": "Stripe webhook secret not configured"}, status_code=400)

    payload = await request.body()
    try:
        event = verify_event(payload, signature, STRIPE_WEBHOOK_SECRET)
        logger.info(f"Stripe event {event.get('id')} ({event.get('type')})")
        reconcile(db, event)
    except Exception as e:
        db.rollback()
        logger.error(f"Webhook Error: {e}")
        return JSONResponse({"error": f"Webhook Error: {e}"}, status_code=400)
    return {"received": True}
