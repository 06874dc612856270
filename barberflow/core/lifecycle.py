"""
Máquina de estados de Booking.status e Subscription.status.

Toda mudança de status passa por ``transition`` (ou ``override_booking_status``
no caso do admin), seja na criação, no webhook, no painel ou nas rotinas
agendadas.
"""

from enum import Enum
from typing import Dict, Optional, Tuple

from barberflow.core.exceptions import ConflictException


class BookingStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    BOOKED = "booked"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELED = "canceled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    FAILED = "failed"
    CANCELED = "canceled"
    NO_PAYMENT = "no-payment"
    PLAN_CREDIT = "plan_credit"
    LOYALTY_REWARD = "loyalty_reward"


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELED = "canceled"


class BookingEvent(str, Enum):
    BOOK = "book"
    PAY_REQUIRED = "pay_required"
    CONFIRM = "confirm"
    PAYMENT_APPROVED = "payment_approved"
    COMPLETE = "complete"
    EXPIRE = "expire"
    CANCEL = "cancel"
    PAYMENT_TIMEOUT = "payment_timeout"


class SubscriptionEvent(str, Enum):
    ACTIVATE = "activate"
    RENEW = "renew"
    EXPIRE = "expire"
    CANCEL = "cancel"


class InvalidTransition(ConflictException):
    pass


B = BookingStatus
S = SubscriptionStatus

TERMINAL_BOOKING_STATUSES = frozenset({B.COMPLETED, B.CANCELED})

# status que o admin pode definir manualmente
ADMIN_BOOKING_STATUSES = frozenset({B.BOOKED, B.CONFIRMED, B.COMPLETED, B.CANCELED})

BOOKING_TRANSITIONS: Dict[Tuple[Optional[BookingStatus], BookingEvent], BookingStatus] = {
    # criação: None = agendamento ainda não existe
    (None, BookingEvent.BOOK): B.BOOKED,
    (None, BookingEvent.PAY_REQUIRED): B.PENDING_PAYMENT,
    (B.BOOKED, BookingEvent.CONFIRM): B.CONFIRMED,
    (B.PENDING_PAYMENT, BookingEvent.CONFIRM): B.CONFIRMED,
    (B.PENDING_PAYMENT, BookingEvent.PAYMENT_APPROVED): B.CONFIRMED,
    (B.PENDING_PAYMENT, BookingEvent.COMPLETE): B.COMPLETED,
    (B.BOOKED, BookingEvent.COMPLETE): B.COMPLETED,
    (B.CONFIRMED, BookingEvent.COMPLETE): B.COMPLETED,
    (B.BOOKED, BookingEvent.EXPIRE): B.COMPLETED,
    (B.CONFIRMED, BookingEvent.EXPIRE): B.COMPLETED,
    (B.PENDING_PAYMENT, BookingEvent.CANCEL): B.CANCELED,
    (B.BOOKED, BookingEvent.CANCEL): B.CANCELED,
    (B.CONFIRMED, BookingEvent.CANCEL): B.CANCELED,
    (B.PENDING_PAYMENT, BookingEvent.PAYMENT_TIMEOUT): B.CANCELED,
}

SUBSCRIPTION_TRANSITIONS: Dict[Tuple[SubscriptionStatus, SubscriptionEvent], SubscriptionStatus] = {
    (S.PENDING, SubscriptionEvent.ACTIVATE): S.ACTIVE,
    (S.EXPIRED, SubscriptionEvent.ACTIVATE): S.ACTIVE,
    (S.ACTIVE, SubscriptionEvent.RENEW): S.ACTIVE,
    (S.EXPIRED, SubscriptionEvent.RENEW): S.ACTIVE,
    (S.ACTIVE, SubscriptionEvent.EXPIRE): S.EXPIRED,
    (S.PENDING, SubscriptionEvent.CANCEL): S.CANCELED,
    (S.ACTIVE, SubscriptionEvent.CANCEL): S.CANCELED,
    (S.EXPIRED, SubscriptionEvent.CANCEL): S.CANCELED,
}


def transition(current, event):
    """Retorna o próximo status ou levanta InvalidTransition."""
    if isinstance(event, BookingEvent):
        table = BOOKING_TRANSITIONS
        current = BookingStatus(current) if current is not None else None
    elif isinstance(event, SubscriptionEvent):
        table = SUBSCRIPTION_TRANSITIONS
        current = SubscriptionStatus(current)
    else:
        raise TypeError(f"unknown event {event!r}")

    nxt = table.get((current, event))
    if nxt is None:
        label = current.value if current is not None else None
        raise InvalidTransition(
            f"Transição inválida: {label} -> {event.value}",
            details={"current": label, "event": event.value},
        )
    return nxt


def can_transition(current, event) -> bool:
    try:
        transition(current, event)
    except InvalidTransition:
        return False
    return True


def sources_for(event: BookingEvent):
    """Status de origem a partir dos quais o evento é válido (filtros de update em massa)."""
    return sorted(
        (src.value for (src, ev) in BOOKING_TRANSITIONS if ev == event and src is not None),
    )


def override_booking_status(current, target) -> BookingStatus:
    """
    Transição manual do admin.

    De um status não terminal pode ir para qualquer status permitido ao admin;
    entre terminais só completed <-> canceled.
    """
    current = BookingStatus(current)
    target = BookingStatus(target)

    if target not in ADMIN_BOOKING_STATUSES:
        raise InvalidTransition(
            f"Status não permitido: {target.value}",
            details={"current": current.value, "target": target.value},
        )
    if current == target or current not in TERMINAL_BOOKING_STATUSES:
        return target
    if target in TERMINAL_BOOKING_STATUSES:
        return target

    raise InvalidTransition(
        f"Transição inválida: {current.value} -> {target.value}",
        details={"current": current.value, "target": target.value},
    )
