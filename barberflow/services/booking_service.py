"""
Ledger de agendamentos.

Criação (cliente e admin), mudança de status e exclusão. A regra de conflito
é "no máximo um agendamento ativo por (barbeiro, horário)": a leitura prévia
pega inclusive agendamentos forçados, e a coluna única ``slot_key`` garante a
regra quando duas requisições passam pela leitura ao mesmo tempo.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from barberflow.config import PUBLIC_API_URL, PUBLIC_SITE_URL
from barberflow.core.events import EventBroker
from barberflow.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from barberflow.core.lifecycle import (
    BookingEvent,
    BookingStatus,
    PaymentStatus,
    override_booking_status,
    transition,
)
from barberflow.models.barber import Barber
from barberflow.models.barbershop import Barbershop
from barberflow.models.booking import AdminBookingCreate, Booking, BookingCreate, make_slot_key
from barberflow.models.customer import Customer, LoyaltyEntry
from barberflow.models.service import Service
from barberflow.services import credit_service, messages

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "Este horário já foi preenchido. Por favor, escolha outro."


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def booking_payload(booking: Booking) -> dict:
    return booking.model_dump(mode="json", exclude={"slot_key"})


def upsert_customer(session: Session, name: str, phone: str) -> Customer:
    customer = session.exec(select(Customer).where(Customer.phone == phone)).first()
    if customer:
        customer.name = name
    else:
        customer = Customer(name=name, phone=phone)
    session.add(customer)
    session.flush()
    return customer


def redeem_loyalty_reward(session: Session, customer_id: int, barbershop_id: int) -> bool:
    result = session.exec(
        update(LoyaltyEntry)
        .where(
            LoyaltyEntry.customer_id == customer_id,
            LoyaltyEntry.barbershop_id == barbershop_id,
            LoyaltyEntry.rewards > 0,
        )
        .values(rewards=LoyaltyEntry.rewards - 1)
    )
    return result.rowcount == 1


def find_conflict(session: Session, barber_id: int, time: datetime) -> Optional[Booking]:
    return session.exec(
        select(Booking).where(
            Booking.barber_id == barber_id,
            Booking.time == time,
            Booking.status != BookingStatus.CANCELED.value,
        )
    ).first()


def _get_shop_resources(session: Session, barbershop_id: int, data: BookingCreate):
    shop = session.get(Barbershop, barbershop_id)
    if not shop:
        raise NotFoundException("Barbearia não encontrada.")

    barber = session.get(Barber, data.barber_id)
    if not barber or barber.barbershop_id != barbershop_id:
        raise NotFoundException("Barbeiro não encontrado.")

    service = session.get(Service, data.service_id)
    if not service or service.barbershop_id != barbershop_id:
        raise NotFoundException("Serviço não encontrado.")

    return shop, barber, service


def create_booking(
    session: Session,
    barbershop_id: int,
    data: BookingCreate,
    *,
    admin: bool = False,
    notifier=None,
    events: Optional[EventBroker] = None,
    now: Optional[datetime] = None,
) -> Booking:
    now = now or datetime.utcnow()
    force = admin and isinstance(data, AdminBookingCreate) and data.force
    explicit_status = data.status if admin and isinstance(data, AdminBookingCreate) else None

    name = (data.customer.name or "").strip()
    phone = (data.customer.phone or "").strip()
    if not name or not phone:
        raise ValidationException("Nome e telefone do cliente são obrigatórios.")

    booking_time = to_utc_naive(data.time)
    # admin pode registrar agendamentos no passado
    if not admin and booking_time < now:
        raise ValidationException("Não é possível agendar em um horário que já passou.")

    shop, barber, service = _get_shop_resources(session, barbershop_id, data)

    if not force and find_conflict(session, barber.id, booking_time):
        raise ConflictException(SLOT_TAKEN_MESSAGE, details={"conflict": True})

    customer = upsert_customer(session, name, phone)

    booking = Booking(
        barbershop_id=barbershop_id,
        barber_id=barber.id,
        service_id=service.id,
        customer_id=customer.id,
        time=booking_time,
        slot_key=None if force else make_slot_key(barber.id, booking_time),
        created_at=now,
        updated_at=now,
    )

    status = transition(None, BookingEvent.BOOK)

    # ordem: fidelidade -> crédito de plano -> serviço comum
    if data.use_loyalty_reward:
        if not redeem_loyalty_reward(session, customer.id, barbershop_id):
            session.rollback()
            raise ValidationException(
                "Cliente não possui recompensas de fidelidade para resgatar nesta barbearia."
            )
        booking.is_loyalty_reward = True
        booking.payment_status = PaymentStatus.LOYALTY_REWARD.value
        if admin:
            status = transition(status, BookingEvent.COMPLETE)

    elif service.is_plan_service and service.plan_id:
        subscription = credit_service.find_usable_subscription(
            session, customer.id, service.plan_id, barbershop_id, now
        )
        if subscription and credit_service.consume_credit(session, subscription.id, now):
            booking.payment_status = PaymentStatus.PLAN_CREDIT.value
            status = transition(status, BookingEvent.CONFIRM)
            booking.subscription_used_id = subscription.id
        elif force:
            booking.payment_status = PaymentStatus.NO_PAYMENT.value
            status = transition(status, BookingEvent.CONFIRM)
        else:
            session.rollback()
            raise ForbiddenException(
                "Cliente não possui créditos válidos para este plano.",
                details={"conflict": True},
            )

    elif admin:
        booking.payment_status = PaymentStatus.NO_PAYMENT.value

    elif shop.require_online_payment and shop.payments_enabled:
        status = transition(None, BookingEvent.PAY_REQUIRED)
        booking.payment_status = PaymentStatus.PENDING.value
        booking.is_payment_mandatory = True

    # status escolhido pelo admin vale como status inicial
    booking.status = explicit_status or status.value

    # admin marcou como concluído: pago no balcão
    if (
        admin
        and booking.status == BookingStatus.COMPLETED.value
        and booking.payment_status not in (PaymentStatus.PLAN_CREDIT.value, PaymentStatus.LOYALTY_REWARD.value)
    ):
        booking.payment_status = PaymentStatus.APPROVED.value

    if booking.status == BookingStatus.CANCELED.value:
        booking.slot_key = None

    customer.last_booking_at = now
    session.add(customer)
    session.add(booking)

    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.warning("Slot race lost for barber %s at %s", barber.id, booking_time)
        raise ConflictException(SLOT_TAKEN_MESSAGE, details={"conflict": True})

    session.refresh(booking)
    logger.info(
        "Booking %s created (shop=%s barber=%s status=%s payment=%s admin=%s force=%s)",
        booking.id, barbershop_id, barber.id, booking.status, booking.payment_status, admin, force,
    )

    if events is not None:
        events.publish(barbershop_id, "new_booking", booking_payload(booking))

    # admin não dispara WhatsApp; pagamento obrigatório só confirma via webhook
    if not admin and notifier is not None and booking.status != BookingStatus.PENDING_PAYMENT.value:
        notifier.send(customer.phone, messages.booking_confirmation(customer.name, shop, booking.time))

    return booking


def get_booking(session: Session, barbershop_id: int, booking_id: int) -> Booking:
    booking = session.get(Booking, booking_id)
    if not booking or booking.barbershop_id != barbershop_id:
        raise NotFoundException("Agendamento não encontrado.")
    return booking


def _notify_canceled(session: Session, booking: Booking, notifier) -> None:
    if notifier is None:
        return
    customer = session.get(Customer, booking.customer_id)
    shop = session.get(Barbershop, booking.barbershop_id)
    if customer and shop:
        notifier.send(customer.phone, messages.booking_canceled(customer.name, shop, booking.time))


def update_status(
    session: Session,
    barbershop_id: int,
    booking_id: int,
    target: str,
    *,
    notifier=None,
    events: Optional[EventBroker] = None,
) -> Booking:
    booking = get_booking(session, barbershop_id, booking_id)

    previous = booking.status
    new_status = override_booking_status(previous, target).value
    if new_status == previous:
        return booking

    reviving = previous == BookingStatus.CANCELED.value
    # volta a ocupar o horário, que pode ter sido reservado por outro cliente
    if reviving and find_conflict(session, booking.barber_id, booking.time):
        raise ConflictException(SLOT_TAKEN_MESSAGE, details={"conflict": True})

    booking.status = new_status
    booking.updated_at = datetime.utcnow()
    if new_status == BookingStatus.CANCELED.value:
        booking.slot_key = None
    elif reviving:
        booking.slot_key = make_slot_key(booking.barber_id, booking.time)

    session.add(booking)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.warning("Slot race lost reviving booking %s", booking.id)
        raise ConflictException(SLOT_TAKEN_MESSAGE, details={"conflict": True})
    session.refresh(booking)
    logger.info("Booking %s status %s -> %s", booking.id, previous, new_status)

    if new_status == BookingStatus.CANCELED.value:
        _notify_canceled(session, booking, notifier)

    if events is not None:
        events.publish(barbershop_id, "booking_updated", booking_payload(booking))
    return booking


def delete_booking(
    session: Session,
    barbershop_id: int,
    booking_id: int,
    *,
    notifier=None,
    events: Optional[EventBroker] = None,
) -> None:
    """Exclusão física. O crédito de plano consumido não é devolvido."""
    booking = get_booking(session, barbershop_id, booking_id)

    customer = session.get(Customer, booking.customer_id)
    shop = session.get(Barbershop, barbershop_id)
    booking_time = booking.time

    session.delete(booking)
    session.commit()
    logger.info("Booking %s deleted", booking_id)

    if notifier is not None and customer and shop:
        notifier.send(customer.phone, messages.booking_canceled(customer.name, shop, booking_time))

    if events is not None:
        events.publish(barbershop_id, "booking_deleted", {"id": booking_id})


def confirm_paid_booking(booking: Booking) -> bool:
    """Webhook aprovou: pending_payment -> confirmed. False se não há transição."""
    if not booking.is_payment_mandatory or booking.status != BookingStatus.PENDING_PAYMENT.value:
        return False
    booking.status = transition(booking.status, BookingEvent.PAYMENT_APPROVED).value
    return True


def list_bookings(session: Session, barbershop_id: int):
    return session.exec(
        select(Booking)
        .where(Booking.barbershop_id == barbershop_id)
        .order_by(Booking.time.desc())
    ).all()


def list_customer_bookings(session: Session, customer_id: int):
    return session.exec(
        select(Booking)
        .where(Booking.customer_id == customer_id)
        .order_by(Booking.time.desc())
    ).all()


def create_payment_link(session: Session, barbershop_id: int, booking_id: int, gateway_factory) -> str:
    """Gera o checkout de pagamento único do agendamento e guarda o id da preferência."""
    shop = session.get(Barbershop, barbershop_id)
    booking = session.get(Booking, booking_id)
    if not shop or not booking or booking.barbershop_id != barbershop_id:
        raise NotFoundException("Agendamento ou barbearia não encontrado(a).")

    if not shop.payments_enabled or not shop.mercadopago_access_token:
        raise ValidationException("Pagamento online não está habilitado para esta barbearia.")

    service = session.get(Service, booking.service_id)
    if not service or not service.price or service.price <= 0:
        raise ValidationException("Serviço ou preço inválido para este agendamento.")

    customer = session.get(Customer, booking.customer_id)

    with gateway_factory(shop.mercadopago_access_token) as gateway:
        result = gateway.create_payment_link(
            items=[{
                "id": str(booking.id),
                "title": f"Agendamento: {service.name}",
                "description": "serviço de barbearia",
                "quantity": 1,
                "currency_id": "BRL",
                "unit_price": service.price,
            }],
            payer={
                "name": customer.name,
                "email": f"cliente_{customer.id}@barberflow.com.br",
                "phone": {"area_code": customer.phone[:2], "number": customer.phone[2:]},
            },
            back_urls={
                "success": f"{PUBLIC_SITE_URL}/{shop.slug}/pagamento-sucesso",
                "failure": f"{PUBLIC_SITE_URL}/{shop.slug}",
                "pending": f"{PUBLIC_SITE_URL}/{shop.slug}",
            },
            notification_url=f"{PUBLIC_API_URL}/barbershops/{barbershop_id}/bookings/webhook?barbershopId={barbershop_id}",
            external_reference=str(booking.id),
        )

    booking.payment_id = str(result["id"])
    session.add(booking)
    session.commit()

    logger.info("Payment link created for booking %s (preference %s)", booking.id, result["id"])
    return result["init_point"]
