import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from barberflow.database import get_session
from barberflow.models.barbershop import Barbershop
from barberflow.core.events import EventBroker, get_broker
from barberflow.services import booking_service
from barberflow.services.mercadopago import get_gateway_factory
from barberflow.services.payment_webhooks import UNMATCHED, handle_booking_payment_notification
from barberflow.services.whatsapp import Notifier, get_notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/barbershops/{shop_id}/bookings", tags=["payments"])


@router.post("/{booking_id}/create-payment")
def create_payment(
    shop_id: int,
    booking_id: int,
    session: Session = Depends(get_session),
    gateway_factory=Depends(get_gateway_factory),
):
    payment_url = booking_service.create_payment_link(session, shop_id, booking_id, gateway_factory)
    return {"payment_url": payment_url}


# =========================
# WEBHOOK (Mercado Pago)
# =========================

@router.post("/webhook")
def booking_payment_webhook(
    shop_id: int,
    notification: Dict[str, Any] = Body(default_factory=dict),
    session: Session = Depends(get_session),
    gateway_factory=Depends(get_gateway_factory),
    notifier: Notifier = Depends(get_notifier),
    events: EventBroker = Depends(get_broker),
):
    logger.info("[WEBHOOK] booking payment notification for shop %s: %s", shop_id, notification)

    shop = session.get(Barbershop, shop_id)
    if not shop or not shop.mercadopago_access_token:
        logger.error("[WEBHOOK] barbershop %s not found or without token", shop_id)
        return {"received": True, "outcome": UNMATCHED}

    with gateway_factory(shop.mercadopago_access_token) as gateway:
        outcome = handle_booking_payment_notification(
            session, shop_id, notification, gateway, notifier=notifier, events=events
        )

    return {"received": True, "outcome": outcome}
