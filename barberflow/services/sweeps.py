"""
Rotinas agendadas de reconciliação de status.

Só UPDATEs condicionais: o filtro revalida a pré-condição no momento da
escrita, então rodam junto com o tráfego normal sem lock.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from barberflow.config import PENDING_PAYMENT_GRACE_MINUTES
from barberflow.core.lifecycle import (
    BookingEvent,
    BookingStatus,
    PaymentStatus,
    sources_for,
    transition,
)
from barberflow.models.booking import Booking
from barberflow.services import credit_service

logger = logging.getLogger(__name__)


def complete_past_bookings(session: Session, now: Optional[datetime] = None) -> dict:
    """Agendamentos booked/confirmed cujo horário já passou viram completed."""
    now = now or datetime.utcnow()
    target = transition(BookingStatus.BOOKED, BookingEvent.EXPIRE)

    result = session.exec(
        update(Booking)
        .where(
            Booking.time < now,
            Booking.status.in_(sources_for(BookingEvent.EXPIRE)),
        )
        .values(status=target.value, updated_at=now)
    )
    session.commit()

    summary = {"completed": result.rowcount}
    logger.info("Past bookings completed: %s", summary)
    return summary


def cancel_unpaid_bookings(
    session: Session,
    now: Optional[datetime] = None,
    grace_minutes: int = PENDING_PAYMENT_GRACE_MINUTES,
) -> dict:
    """Pagamento obrigatório não feito dentro do prazo: cancela e libera o horário."""
    now = now or datetime.utcnow()
    cutoff = now - timedelta(minutes=grace_minutes)
    target = transition(BookingStatus.PENDING_PAYMENT, BookingEvent.PAYMENT_TIMEOUT)

    result = session.exec(
        update(Booking)
        .where(
            Booking.is_payment_mandatory == True,  # noqa: E712
            Booking.status.in_(sources_for(BookingEvent.PAYMENT_TIMEOUT)),
            Booking.payment_status == PaymentStatus.PENDING.value,
            Booking.created_at < cutoff,
        )
        .values(
            status=target.value,
            payment_status=PaymentStatus.CANCELED.value,
            slot_key=None,
            updated_at=now,
        )
    )
    session.commit()

    summary = {"canceled": result.rowcount}
    if summary["canceled"]:
        logger.info("[CRON] %s unpaid bookings canceled", summary["canceled"])
    return summary


def expire_lapsed_subscriptions(session: Session, now: Optional[datetime] = None) -> dict:
    return credit_service.expire_lapsed(session, now or datetime.utcnow())
