import logging
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session, select

from barberflow.database import get_session
from barberflow.models.admin_user import AdminUser
from barberflow.models.barbershop import Barbershop
from barberflow.models.customer import Customer
from barberflow.models.plan import Plan
from barberflow.models.subscription import Subscription, SubscriptionCheckout
from barberflow.core.exceptions import NotFoundException, UpstreamException
from barberflow.core.security import get_current_admin, get_current_customer, require_shop_access
from barberflow.services import credit_service
from barberflow.services.mercadopago import get_gateway_factory
from barberflow.services.payment_webhooks import UNMATCHED, reconcile_subscription_notification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/barbershops/{shop_id}/subscriptions", tags=["subscriptions"])


def _subscription_summary(subscription: Subscription) -> dict:
    return {
        "id": subscription.id,
        "status": subscription.status,
        "auto_renew": subscription.auto_renew,
        "credits_remaining": subscription.credits_remaining,
        "start_date": subscription.start_date,
        "end_date": subscription.end_date,
        "mercadopago_preapproval_id": subscription.mercadopago_preapproval_id,
    }


# =========================
# CLIENTE
# =========================

@router.post("/create-preapproval")
def create_preapproval(
    shop_id: int,
    data: SubscriptionCheckout,
    session: Session = Depends(get_session),
    customer: Customer = Depends(get_current_customer),
    gateway_factory=Depends(get_gateway_factory),
):
    return credit_service.begin_checkout(
        session, shop_id, data.plan_id, customer, gateway_factory, datetime.utcnow()
    )


@router.post("/{subscription_id}/cancel")
def cancel_subscription(
    shop_id: int,
    subscription_id: int,
    session: Session = Depends(get_session),
    customer: Customer = Depends(get_current_customer),
    gateway_factory=Depends(get_gateway_factory),
):
    subscription = credit_service.cancel_renewal(
        session, shop_id, subscription_id, customer, gateway_factory
    )
    return {
        "message": "Renovação automática cancelada. Seus créditos continuam válidos até o fim do período.",
        "subscription": _subscription_summary(subscription),
    }


# =========================
# WEBHOOK (Mercado Pago)
# =========================

@router.post("/webhook")
def subscription_webhook(
    shop_id: int,
    notification: Dict[str, Any] = Body(default_factory=dict),
    session: Session = Depends(get_session),
    gateway_factory=Depends(get_gateway_factory),
):
    logger.info("[WEBHOOK] subscription notification for shop %s: %s", shop_id, notification)

    shop = session.get(Barbershop, shop_id)
    if not shop or not shop.mercadopago_access_token:
        logger.error("[WEBHOOK] barbershop %s not found or without token", shop_id)
        return {"received": True, "outcome": UNMATCHED}

    with gateway_factory(shop.mercadopago_access_token) as gateway:
        outcome = reconcile_subscription_notification(session, shop_id, notification, gateway)

    return {"received": True, "outcome": outcome}


# =========================
# ADMIN
# =========================

@router.get("")
def list_subscriptions(
    shop_id: int,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)

    rows = session.exec(
        select(Subscription, Customer, Plan)
        .join(Customer, Customer.id == Subscription.customer_id)
        .join(Plan, Plan.id == Subscription.plan_id)
        .where(Subscription.barbershop_id == shop_id)
        .order_by(Subscription.created_at.desc())
    ).all()

    return [
        {
            **_subscription_summary(sub),
            "customer": {"id": customer.id, "name": customer.name, "phone": customer.phone},
            "plan": {
                "id": plan.id,
                "name": plan.name,
                "price": plan.price,
                "total_credits": plan.total_credits,
                "duration_in_days": plan.duration_in_days,
            },
        }
        for sub, customer, plan in rows
    ]


@router.put("/{subscription_id}/activate")
def activate_subscription(
    shop_id: int,
    subscription_id: int,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)

    subscription = credit_service.activate_manually(session, shop_id, subscription_id, datetime.utcnow())
    return {"message": "Assinatura ativada com sucesso!", "subscription": subscription}


@router.get("/{subscription_id}/check-status")
def check_subscription_status(
    shop_id: int,
    subscription_id: int,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
    gateway_factory=Depends(get_gateway_factory),
):
    """Diagnóstico: estado local lado a lado com o preapproval no Mercado Pago."""
    require_shop_access(current_admin, shop_id)

    subscription = session.get(Subscription, subscription_id)
    if not subscription or subscription.barbershop_id != shop_id:
        raise NotFoundException("Assinatura não encontrada.")

    result = {"subscription": _subscription_summary(subscription), "mercadopago_status": None}

    shop = session.get(Barbershop, shop_id)
    if subscription.mercadopago_preapproval_id and shop.mercadopago_access_token:
        try:
            with gateway_factory(shop.mercadopago_access_token) as gateway:
                preapproval = gateway.get_recurring_plan(subscription.mercadopago_preapproval_id)
            result["mercadopago_status"] = preapproval.get("status")
            result["mercadopago_data"] = {
                "status": preapproval.get("status"),
                "reason": preapproval.get("reason"),
                "next_payment_date": preapproval.get("next_payment_date"),
            }
        except UpstreamException as e:
            result["mercadopago_error"] = e.details

    return result
