"""
Webhooks do Mercado Pago.

O processador entrega notificações pelo menos uma vez, fora de ordem e às
vezes duplicadas. Os handlers consultam o estado atual no processador (com o
cliente recebido por parâmetro, já autenticado com o token da barbearia) e
só escrevem quando o estado observado difere do armazenado.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlmodel import Session, select

from barberflow.core.events import EventBroker
from barberflow.core.exceptions import UpstreamException, ValidationException
from barberflow.core.lifecycle import PaymentStatus, SubscriptionStatus
from barberflow.models.barbershop import Barbershop
from barberflow.models.booking import Booking
from barberflow.models.customer import Customer
from barberflow.models.plan import Plan
from barberflow.models.subscription import Subscription
from barberflow.services import credit_service, messages
from barberflow.services.booking_service import booking_payload, confirm_paid_booking

logger = logging.getLogger(__name__)

IGNORED = "ignored"
UNMATCHED = "unmatched"
UNCHANGED = "unchanged"
UPDATED = "updated"
CONFIRMED = "confirmed"
ACTIVATED = "activated"
RENEWED = "renewed"

RECURRING_NOTIFICATION_TYPES = ("subscription_preapproval", "payment", "subscription_authorized_payment")


# =========================
# PAGAMENTO ÚNICO (agendamento)
# =========================

def extract_payment_id(notification: Dict[str, Any]) -> Optional[str]:
    """
    Id do pagamento no formato novo (``type=payment`` + ``data.id``) ou no
    legado (``topic=payment`` + ``resource`` terminando no id).

    None quando não é uma notificação de pagamento; ValidationException quando
    é, mas veio sem id.
    """
    if notification.get("type") == "payment":
        payment_id = (notification.get("data") or {}).get("id")
    elif notification.get("topic") == "payment":
        resource = str(notification.get("resource") or "")
        payment_id = resource.rstrip("/").rsplit("/", 1)[-1]
    else:
        return None

    if not payment_id:
        raise ValidationException("Notificação de pagamento sem id.", details={"notification": notification})
    return str(payment_id)


def _not_found(error: UpstreamException) -> bool:
    return error.details.get("status") == 404


def _resolve_booking(session: Session, barbershop_id: int, external_reference) -> Optional[Booking]:
    try:
        booking_id = int(str(external_reference))
    except (TypeError, ValueError):
        return None

    booking = session.get(Booking, booking_id)
    if not booking or booking.barbershop_id != barbershop_id:
        return None
    return booking


def handle_booking_payment_notification(
    session: Session,
    barbershop_id: int,
    notification: Dict[str, Any],
    gateway,
    *,
    notifier=None,
    events: Optional[EventBroker] = None,
) -> str:
    payment_id = extract_payment_id(notification)
    if payment_id is None:
        logger.info("[WEBHOOK] ignoring notification type=%s topic=%s", notification.get("type"), notification.get("topic"))
        return IGNORED

    try:
        payment = gateway.get_payment(payment_id)
    except UpstreamException as e:
        if not _not_found(e):
            raise
        logger.warning("[WEBHOOK] payment %s not found at processor (shop=%s)", payment_id, barbershop_id)
        return UNMATCHED

    incoming_status = payment.get("status")
    external_reference = payment.get("external_reference")
    logger.info("[WEBHOOK] payment %s status=%s ref=%s", payment_id, incoming_status, external_reference)

    booking = _resolve_booking(session, barbershop_id, external_reference)
    if booking is None:
        logger.warning("[WEBHOOK] no booking for payment %s (ref=%s, shop=%s)", payment_id, external_reference, barbershop_id)
        return UNMATCHED

    if booking.payment_status == incoming_status:
        return UNCHANGED

    booking.payment_status = incoming_status
    confirmed = incoming_status == PaymentStatus.APPROVED.value and confirm_paid_booking(booking)
    booking.updated_at = datetime.utcnow()

    session.add(booking)
    session.commit()
    session.refresh(booking)
    logger.info("[WEBHOOK] booking %s payment_status=%s status=%s", booking.id, booking.payment_status, booking.status)

    if confirmed and notifier is not None:
        customer = session.get(Customer, booking.customer_id)
        shop = session.get(Barbershop, booking.barbershop_id)
        if customer and shop:
            notifier.send(customer.phone, messages.booking_confirmation(customer.name, shop, booking.time))

    if events is not None:
        events.publish(barbershop_id, "booking_updated", booking_payload(booking))

    return CONFIRMED if confirmed else UPDATED


# =========================
# ASSINATURA (recorrente)
# =========================

@dataclass
class ObservedSubscription:
    """Estado atual de um preapproval, como visto no processador."""

    preapproval_id: str
    preapproval_status: Optional[str]
    external_reference: Optional[str]
    approved_payment_id: Optional[str] = None


def observe_subscription(notification: Dict[str, Any], gateway) -> Optional[ObservedSubscription]:
    """Reduz qualquer um dos tipos de notificação ao mesmo estado observado."""
    kind = notification.get("type")
    data_id = (notification.get("data") or {}).get("id")
    if kind not in RECURRING_NOTIFICATION_TYPES or not data_id:
        return None
    data_id = str(data_id)

    approved_payment_id = None
    if kind == "subscription_preapproval":
        preapproval_id = data_id
    elif kind == "payment":
        payment = gateway.get_payment(data_id)
        preapproval_id = payment.get("preapproval_id")
        if payment.get("status") == PaymentStatus.APPROVED.value:
            approved_payment_id = str(payment.get("id") or data_id)
    else:
        authorized = gateway.get_authorized_payment(data_id)
        preapproval_id = authorized.get("preapproval_id")
        payment = authorized.get("payment") or {}
        if payment.get("status") == PaymentStatus.APPROVED.value and payment.get("id"):
            approved_payment_id = str(payment["id"])

    if not preapproval_id:
        # pagamento avulso, não pertence a uma assinatura
        return None

    preapproval = gateway.get_recurring_plan(str(preapproval_id))
    return ObservedSubscription(
        preapproval_id=str(preapproval_id),
        preapproval_status=preapproval.get("status"),
        external_reference=preapproval.get("external_reference"),
        approved_payment_id=approved_payment_id,
    )


def _resolve_subscription(session: Session, barbershop_id: int, observed: ObservedSubscription) -> Optional[Subscription]:
    subscription = session.exec(
        select(Subscription).where(Subscription.mercadopago_preapproval_id == observed.preapproval_id)
    ).first()

    if not subscription and observed.external_reference:
        try:
            ref = json.loads(observed.external_reference)
            subscription = session.get(Subscription, int(ref["subscriptionId"]))
        except (ValueError, TypeError, KeyError) as e:
            logger.error("[WEBHOOK] bad external_reference %r: %s", observed.external_reference, e)
            return None
        if subscription and not subscription.mercadopago_preapproval_id:
            subscription.mercadopago_preapproval_id = observed.preapproval_id

    if subscription and subscription.barbershop_id != barbershop_id:
        return None
    return subscription


def apply_observed_state(subscription: Subscription, plan: Plan, observed: ObservedSubscription, now: datetime) -> str:
    """Leva a assinatura em direção ao estado observado. Chamadas repetidas não mudam nada."""
    status = subscription.status
    payment_id = observed.approved_payment_id

    if observed.preapproval_status in ("paused", "cancelled"):
        if subscription.auto_renew:
            subscription.auto_renew = False
            logger.info("[WEBHOOK] subscription %s auto_renew off (%s)", subscription.id, observed.preapproval_status)
            return UPDATED
        return UNCHANGED

    if status == SubscriptionStatus.PENDING.value:
        if observed.preapproval_status == "authorized" or payment_id:
            credit_service.activate(subscription, plan, now, payment_id)
            # a cobrança que vier depois pertence a este mesmo período
            subscription.awaiting_first_charge = payment_id is None
            return ACTIVATED
        return UNCHANGED

    if not payment_id or payment_id == subscription.last_payment_id:
        return UNCHANGED

    if status == SubscriptionStatus.ACTIVE.value and subscription.awaiting_first_charge:
        subscription.last_payment_id = payment_id
        subscription.awaiting_first_charge = False
        return UPDATED

    if status in (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.EXPIRED.value):
        credit_service.renew(subscription, plan, now, payment_id)
        return RENEWED

    return UNCHANGED


def reconcile_subscription_notification(
    session: Session,
    barbershop_id: int,
    notification: Dict[str, Any],
    gateway,
    now: Optional[datetime] = None,
) -> str:
    now = now or datetime.utcnow()

    try:
        observed = observe_subscription(notification, gateway)
    except UpstreamException as e:
        if not _not_found(e):
            raise
        logger.warning(
            "[WEBHOOK] %s %s not found at processor (shop=%s)",
            notification.get("type"), (notification.get("data") or {}).get("id"), barbershop_id,
        )
        return UNMATCHED

    if observed is None:
        logger.info("[WEBHOOK] ignoring subscription notification type=%s", notification.get("type"))
        return IGNORED

    subscription = _resolve_subscription(session, barbershop_id, observed)
    if subscription is None:
        logger.warning("[WEBHOOK] no subscription for preapproval %s (shop=%s)", observed.preapproval_id, barbershop_id)
        return UNMATCHED

    plan = session.get(Plan, subscription.plan_id)
    outcome = apply_observed_state(subscription, plan, observed, now)

    # o preapproval_id pode ter sido gravado mesmo sem mudança de status
    session.add(subscription)
    session.commit()

    logger.info(
        "[WEBHOOK] subscription %s -> %s (status=%s credits=%s)",
        subscription.id, outcome, subscription.status, subscription.credits_remaining,
    )
    return outcome
