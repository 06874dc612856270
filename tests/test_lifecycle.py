import pytest

from barberflow.core.exceptions import ConflictException
from barberflow.core.lifecycle import (
    BookingEvent,
    BookingStatus,
    InvalidTransition,
    SubscriptionEvent,
    SubscriptionStatus,
    can_transition,
    override_booking_status,
    sources_for,
    transition,
)


@pytest.mark.parametrize(
    "current,event,expected",
    [
        ("booked", BookingEvent.CONFIRM, BookingStatus.CONFIRMED),
        ("pending_payment", BookingEvent.PAYMENT_APPROVED, BookingStatus.CONFIRMED),
        ("confirmed", BookingEvent.COMPLETE, BookingStatus.COMPLETED),
        ("booked", BookingEvent.EXPIRE, BookingStatus.COMPLETED),
        ("confirmed", BookingEvent.CANCEL, BookingStatus.CANCELED),
        ("pending_payment", BookingEvent.PAYMENT_TIMEOUT, BookingStatus.CANCELED),
    ],
)
def test_booking_transitions(current, event, expected):
    assert transition(current, event) == expected


def test_creation_events_start_from_nothing():
    assert transition(None, BookingEvent.BOOK) == BookingStatus.BOOKED
    assert transition(None, BookingEvent.PAY_REQUIRED) == BookingStatus.PENDING_PAYMENT

    with pytest.raises(InvalidTransition):
        transition("booked", BookingEvent.BOOK)
    with pytest.raises(InvalidTransition):
        transition(None, BookingEvent.CONFIRM)


def test_terminal_booking_states_reject_events():
    for event in BookingEvent:
        assert not can_transition("completed", event)
        assert not can_transition("canceled", event)


def test_invalid_transition_is_a_conflict():
    with pytest.raises(InvalidTransition) as exc:
        transition("booked", BookingEvent.PAYMENT_TIMEOUT)

    assert isinstance(exc.value, ConflictException)
    assert exc.value.status_code == 409
    assert exc.value.details == {"current": "booked", "event": "payment_timeout"}


def test_expire_sweep_only_touches_booked_and_confirmed():
    assert sources_for(BookingEvent.EXPIRE) == ["booked", "confirmed"]
    assert sources_for(BookingEvent.PAYMENT_TIMEOUT) == ["pending_payment"]


def test_admin_override_from_non_terminal_goes_anywhere():
    assert override_booking_status("booked", "completed") == BookingStatus.COMPLETED
    assert override_booking_status("confirmed", "booked") == BookingStatus.BOOKED
    assert override_booking_status("pending_payment", "canceled") == BookingStatus.CANCELED


def test_admin_override_between_terminals_and_same_status():
    assert override_booking_status("completed", "canceled") == BookingStatus.CANCELED
    assert override_booking_status("canceled", "completed") == BookingStatus.COMPLETED
    assert override_booking_status("completed", "completed") == BookingStatus.COMPLETED


def test_admin_override_cannot_reopen_terminal_booking():
    with pytest.raises(InvalidTransition):
        override_booking_status("completed", "booked")
    with pytest.raises(InvalidTransition):
        override_booking_status("canceled", "confirmed")


def test_admin_cannot_set_pending_payment():
    with pytest.raises(InvalidTransition):
        override_booking_status("booked", "pending_payment")


def test_subscription_transitions():
    assert transition("pending", SubscriptionEvent.ACTIVATE) == SubscriptionStatus.ACTIVE
    assert transition("active", SubscriptionEvent.RENEW) == SubscriptionStatus.ACTIVE
    assert transition("expired", SubscriptionEvent.RENEW) == SubscriptionStatus.ACTIVE
    assert transition("active", SubscriptionEvent.EXPIRE) == SubscriptionStatus.EXPIRED

    with pytest.raises(InvalidTransition):
        transition("active", SubscriptionEvent.ACTIVATE)
    with pytest.raises(InvalidTransition):
        transition("canceled", SubscriptionEvent.RENEW)
