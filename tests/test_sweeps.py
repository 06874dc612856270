from datetime import datetime, timedelta

import pytest

from barberflow.models.booking import Booking, make_slot_key
from barberflow.services import sweeps


@pytest.fixture
def make_booking(session, shop, barber, service, customer):
    def _make(time, status="booked", **kwargs):
        booking = Booking(
            barbershop_id=shop.id,
            barber_id=barber.id,
            service_id=service.id,
            customer_id=customer.id,
            time=time,
            status=status,
            **kwargs,
        )
        session.add(booking)
        session.commit()
        session.refresh(booking)
        return booking

    return _make


def test_complete_past_bookings(session, make_booking, now):
    past_booked = make_booking(now - timedelta(hours=2))
    past_confirmed = make_booking(now - timedelta(hours=3), status="confirmed")
    past_canceled = make_booking(now - timedelta(hours=4), status="canceled")
    past_pending = make_booking(now - timedelta(hours=5), status="pending_payment")
    future = make_booking(now + timedelta(hours=2))

    summary = sweeps.complete_past_bookings(session, now)

    assert summary == {"completed": 2}
    for booking in (past_booked, past_confirmed, past_canceled, past_pending, future):
        session.refresh(booking)
    assert past_booked.status == "completed"
    assert past_confirmed.status == "completed"
    assert past_canceled.status == "canceled"
    assert past_pending.status == "pending_payment"
    assert future.status == "booked"


def test_complete_past_bookings_is_idempotent(session, make_booking, now):
    make_booking(now - timedelta(hours=2))

    sweeps.complete_past_bookings(session, now)
    assert sweeps.complete_past_bookings(session, now) == {"completed": 0}


def test_cancel_unpaid_bookings_after_grace(session, barber, make_booking, now):
    slot = now + timedelta(days=1)
    stale = make_booking(
        slot,
        status="pending_payment",
        payment_status="pending",
        is_payment_mandatory=True,
        created_at=now - timedelta(minutes=20),
        slot_key=make_slot_key(barber.id, slot),
    )
    fresh = make_booking(
        slot + timedelta(hours=1),
        status="pending_payment",
        payment_status="pending",
        is_payment_mandatory=True,
        created_at=now - timedelta(minutes=5),
    )
    paid = make_booking(
        slot + timedelta(hours=2),
        status="confirmed",
        payment_status="approved",
        is_payment_mandatory=True,
        created_at=now - timedelta(hours=1),
    )

    summary = sweeps.cancel_unpaid_bookings(session, now, grace_minutes=15)

    assert summary == {"canceled": 1}
    for booking in (stale, fresh, paid):
        session.refresh(booking)
    assert stale.status == "canceled"
    assert stale.payment_status == "canceled"
    assert stale.slot_key is None
    assert fresh.status == "pending_payment"
    assert paid.status == "confirmed"


def test_expire_lapsed_subscriptions(session, make_subscription, now):
    lapsed = make_subscription(end_date=now - timedelta(hours=1))

    summary = sweeps.expire_lapsed_subscriptions(session, now)

    assert summary == {"expired": 1, "canceled": 0}
    session.refresh(lapsed)
    assert lapsed.status == "expired"
