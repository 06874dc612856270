from datetime import datetime

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from barberflow.database import get_session
from barberflow.models.customer import Customer
from barberflow.models.plan import Plan
from barberflow.models.subscription import Subscription
from barberflow.core.security import get_current_customer
from barberflow.services import booking_service, credit_service


router = APIRouter(prefix="/customers/me", tags=["customers"])


@router.get("/bookings")
def my_bookings(
    session: Session = Depends(get_session),
    customer: Customer = Depends(get_current_customer),
):
    return booking_service.list_customer_bookings(session, customer.id)


@router.get("/subscriptions")
def my_subscriptions(
    session: Session = Depends(get_session),
    customer: Customer = Depends(get_current_customer),
):
    rows = session.exec(
        select(Subscription, Plan)
        .join(Plan, Plan.id == Subscription.plan_id)
        .where(Subscription.customer_id == customer.id)
        .order_by(Subscription.created_at.desc())
    ).all()

    return [
        {**sub.model_dump(), "plan": {"id": plan.id, "name": plan.name, "total_credits": plan.total_credits}}
        for sub, plan in rows
    ]


@router.get("/credits/{shop_id}")
def my_credits(
    shop_id: int,
    session: Session = Depends(get_session),
    customer: Customer = Depends(get_current_customer),
):
    return credit_service.credit_summary(session, customer.id, shop_id, datetime.utcnow())
