"""
Lembretes por WhatsApp disparados pelo worker.

- diário: agendamentos ``booked`` de hoje; às 08h os de antes das 13h, às 13h
  o restante
- retorno (terças): clientes sumidos há mais de N dias, sem horário futuro,
  com menos de 3 lembretes no total e nenhum neste mês
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from barberflow.core.lifecycle import BookingStatus
from barberflow.models.barber import Barber
from barberflow.models.barbershop import Barbershop
from barberflow.models.booking import Booking
from barberflow.models.customer import Customer, ReturnReminder
from barberflow.services import messages
from barberflow.services.whatsapp import WhatsAppClient

logger = logging.getLogger(__name__)

AFTERNOON_HOUR = 13
MAX_RETURN_REMINDERS = 3


def _to_utc_naive(local_dt: datetime) -> datetime:
    return local_dt.astimezone(timezone.utc).replace(tzinfo=None)


def local_day_bounds(now: datetime):
    """Início e fim (UTC naive) do dia local que contém ``now``."""
    start_local = messages.to_local(now).replace(hour=0, minute=0, second=0, microsecond=0)
    return _to_utc_naive(start_local), _to_utc_naive(start_local + timedelta(days=1))


def send_daily_reminders(
    session: Session,
    client: WhatsAppClient,
    trigger_hour: int,
    now: Optional[datetime] = None,
    pause: Optional[Callable[[], None]] = None,
) -> int:
    now = now or datetime.utcnow()
    start, end = local_day_bounds(now)
    morning = trigger_hour < AFTERNOON_HOUR

    rows = session.exec(
        select(Booking, Customer, Barber, Barbershop)
        .join(Customer, Customer.id == Booking.customer_id)
        .join(Barber, Barber.id == Booking.barber_id)
        .join(Barbershop, Barbershop.id == Booking.barbershop_id)
        .where(
            Booking.time >= start,
            Booking.time < end,
            Booking.status == BookingStatus.BOOKED.value,
        )
        .order_by(Booking.time)
    ).all()

    sent = 0
    for booking, customer, barber, shop in rows:
        hour = messages.to_local(booking.time).hour
        if morning and hour >= AFTERNOON_HOUR:
            continue
        if not morning and hour < AFTERNOON_HOUR:
            continue

        text = messages.daily_reminder(customer.name, shop, barber.name, booking.time, morning)
        if client.send_message(customer.phone, text):
            sent += 1
        if pause:
            pause()

    logger.info("Daily reminders (trigger %sh): %s sent of %s bookings today", trigger_hour, sent, len(rows))
    return sent


def find_customers_to_remind(session: Session, shop: Barbershop, now: datetime):
    today_start, _ = local_day_bounds(now)
    month_start = _to_utc_naive(
        messages.to_local(now).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    )
    cutoff = now - timedelta(days=shop.return_reminder_days)

    last_visits = session.exec(
        select(Booking.customer_id)
        .where(
            Booking.barbershop_id == shop.id,
            Booking.status == BookingStatus.COMPLETED.value,
        )
        .group_by(Booking.customer_id)
        .having(func.max(Booking.time) < cutoff)
    ).all()

    eligible = []
    for customer_id in last_visits:
        upcoming = session.exec(
            select(Booking.id).where(
                Booking.customer_id == customer_id,
                Booking.barbershop_id == shop.id,
                Booking.status.in_([BookingStatus.BOOKED.value, BookingStatus.CONFIRMED.value]),
                Booking.time >= today_start,
            )
        ).first()
        if upcoming:
            continue

        total, last_sent = session.exec(
            select(func.count(ReturnReminder.id), func.max(ReturnReminder.sent_at))
            .where(ReturnReminder.customer_id == customer_id)
        ).one()
        if total >= MAX_RETURN_REMINDERS:
            continue
        if last_sent is not None and last_sent >= month_start:
            continue

        customer = session.get(Customer, customer_id)
        if customer:
            eligible.append(customer)

    return eligible


def send_return_reminders(
    session: Session,
    client: WhatsAppClient,
    now: Optional[datetime] = None,
    pause: Optional[Callable[[], None]] = None,
) -> int:
    now = now or datetime.utcnow()

    shops = session.exec(
        select(Barbershop).where(Barbershop.return_reminder_enabled == True)  # noqa: E712
    ).all()
    logger.info("Return reminders: %s barbershops enabled", len(shops))

    sent = 0
    for shop in shops:
        customers = find_customers_to_remind(session, shop, now)
        if not customers:
            logger.info("No eligible customers for %s", shop.name)
            continue

        logger.info("Sending %s return reminders for %s", len(customers), shop.name)
        for customer in customers:
            text = messages.return_reminder(shop.return_reminder_message, customer.name, shop.return_reminder_days)
            client.send_message(customer.phone, text)

            session.add(ReturnReminder(customer_id=customer.id, barbershop_id=shop.id, sent_at=now))
            session.commit()
            sent += 1
            if pause:
                pause()

    return sent
