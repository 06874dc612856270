import json
from datetime import datetime, timedelta

import pytest

from barberflow.core.exceptions import UpstreamException, ValidationException
from barberflow.models.booking import Booking
from barberflow.services import credit_service, payment_webhooks
from barberflow.services.payment_webhooks import (
    extract_payment_id,
    handle_booking_payment_notification,
    reconcile_subscription_notification,
)


@pytest.fixture
def pending_booking(session, shop, barber, service, customer):
    booking = Booking(
        barbershop_id=shop.id,
        barber_id=barber.id,
        service_id=service.id,
        customer_id=customer.id,
        time=datetime(2024, 6, 2, 10, 0),
        status="pending_payment",
        payment_status="pending",
        is_payment_mandatory=True,
    )
    session.add(booking)
    session.commit()
    session.refresh(booking)
    return booking


def _payment_notification(payment_id="P1"):
    return {"type": "payment", "action": "payment.updated", "data": {"id": payment_id}}


# =========================
# EXTRAÇÃO DO ID
# =========================

def test_extract_payment_id_both_shapes():
    assert extract_payment_id(_payment_notification("123")) == "123"
    assert extract_payment_id({"topic": "payment", "resource": "https://api.mercadolibre.com/v1/payments/456"}) == "456"
    assert extract_payment_id({"topic": "merchant_order", "resource": "x/1"}) is None
    assert extract_payment_id({"type": "plan"}) is None


def test_payment_notification_without_id_is_malformed():
    with pytest.raises(ValidationException):
        extract_payment_id({"type": "payment", "data": {}})


# =========================
# PAGAMENTO ÚNICO
# =========================

def test_approved_payment_confirms_and_redelivery_is_noop(session, shop, pending_booking, gateway, notifier):
    gateway.payments["P1"] = {"id": "P1", "status": "approved", "external_reference": str(pending_booking.id)}

    outcome = handle_booking_payment_notification(session, shop.id, _payment_notification(), gateway, notifier=notifier)

    assert outcome == payment_webhooks.CONFIRMED
    session.refresh(pending_booking)
    assert pending_booking.status == "confirmed"
    assert pending_booking.payment_status == "approved"
    assert len(notifier.sent) == 1

    again = handle_booking_payment_notification(session, shop.id, _payment_notification(), gateway, notifier=notifier)

    assert again == payment_webhooks.UNCHANGED
    session.refresh(pending_booking)
    assert pending_booking.status == "confirmed"
    assert len(notifier.sent) == 1


def test_optional_payment_updates_status_silently(session, shop, barber, service, customer, gateway, notifier):
    booking = Booking(
        barbershop_id=shop.id, barber_id=barber.id, service_id=service.id, customer_id=customer.id,
        time=datetime(2024, 6, 2, 10, 0), status="booked",
    )
    session.add(booking)
    session.commit()
    gateway.payments["P2"] = {"id": "P2", "status": "approved", "external_reference": str(booking.id)}

    outcome = handle_booking_payment_notification(session, shop.id, _payment_notification("P2"), gateway, notifier=notifier)

    assert outcome == payment_webhooks.UPDATED
    session.refresh(booking)
    assert booking.status == "booked"
    assert booking.payment_status == "approved"
    assert notifier.sent == []


def test_rejected_payment_keeps_booking_waiting(session, shop, pending_booking, gateway):
    gateway.payments["P1"] = {"id": "P1", "status": "rejected", "external_reference": str(pending_booking.id)}

    outcome = handle_booking_payment_notification(session, shop.id, _payment_notification(), gateway)

    assert outcome == payment_webhooks.UPDATED
    session.refresh(pending_booking)
    assert pending_booking.status == "pending_payment"
    assert pending_booking.payment_status == "rejected"


@pytest.mark.parametrize("reference", [None, "abc", "99999"])
def test_unmatched_reference_is_dropped(session, shop, gateway, reference):
    gateway.payments["P9"] = {"id": "P9", "status": "approved", "external_reference": reference}

    outcome = handle_booking_payment_notification(session, shop.id, _payment_notification("P9"), gateway)
    assert outcome == payment_webhooks.UNMATCHED


def test_booking_of_another_shop_is_unmatched(session, other_shop, pending_booking, gateway):
    gateway.payments["P1"] = {"id": "P1", "status": "approved", "external_reference": str(pending_booking.id)}

    outcome = handle_booking_payment_notification(session, other_shop.id, _payment_notification(), gateway)

    assert outcome == payment_webhooks.UNMATCHED
    session.refresh(pending_booking)
    assert pending_booking.status == "pending_payment"


def test_other_notification_types_are_ignored(session, shop, gateway):
    outcome = handle_booking_payment_notification(session, shop.id, {"type": "merchant_order"}, gateway)
    assert outcome == payment_webhooks.IGNORED


# =========================
# ASSINATURA
# =========================

@pytest.fixture
def pending_subscription(make_subscription):
    return make_subscription(status="pending", credits_remaining=0, mercadopago_preapproval_id="pre-1")


def test_authorized_preapproval_activates_pending(session, shop, plan, pending_subscription, gateway, now):
    gateway.preapprovals["pre-1"] = {"id": "pre-1", "status": "authorized"}
    notification = {"type": "subscription_preapproval", "data": {"id": "pre-1"}}

    outcome = reconcile_subscription_notification(session, shop.id, notification, gateway, now)

    assert outcome == payment_webhooks.ACTIVATED
    session.refresh(pending_subscription)
    assert pending_subscription.status == "active"
    assert pending_subscription.credits_remaining == plan.total_credits
    assert pending_subscription.end_date == now + timedelta(days=plan.duration_in_days)

    # mesma notificação de novo
    assert reconcile_subscription_notification(session, shop.id, notification, gateway, now) == payment_webhooks.UNCHANGED


def test_approved_payment_activates_then_renews_once(session, shop, plan, pending_subscription, gateway, now):
    gateway.preapprovals["pre-1"] = {"id": "pre-1", "status": "authorized"}
    gateway.payments["PAY-1"] = {"id": "PAY-1", "status": "approved", "preapproval_id": "pre-1"}
    gateway.payments["PAY-2"] = {"id": "PAY-2", "status": "approved", "preapproval_id": "pre-1"}

    first = reconcile_subscription_notification(session, shop.id, {"type": "payment", "data": {"id": "PAY-1"}}, gateway, now)
    assert first == payment_webhooks.ACTIVATED
    session.refresh(pending_subscription)
    assert pending_subscription.last_payment_id == "PAY-1"

    # consome um crédito e recebe o pagamento do mês seguinte (duas vezes)
    pending_subscription.credits_remaining = 1
    session.add(pending_subscription)
    session.commit()

    later = now + timedelta(days=30)
    renewed = reconcile_subscription_notification(session, shop.id, {"type": "payment", "data": {"id": "PAY-2"}}, gateway, later)
    assert renewed == payment_webhooks.RENEWED
    session.refresh(pending_subscription)
    assert pending_subscription.credits_remaining == plan.total_credits
    assert pending_subscription.end_date == later + timedelta(days=plan.duration_in_days)

    pending_subscription.credits_remaining = 2
    session.add(pending_subscription)
    session.commit()

    # o mesmo pagamento chegando como authorized_payment não renova de novo
    gateway.authorized_payments["AP-2"] = {
        "id": "AP-2",
        "preapproval_id": "pre-1",
        "payment": {"id": "PAY-2", "status": "approved"},
    }
    duplicate = reconcile_subscription_notification(
        session, shop.id, {"type": "subscription_authorized_payment", "data": {"id": "AP-2"}}, gateway, later
    )
    assert duplicate == payment_webhooks.UNCHANGED
    session.refresh(pending_subscription)
    assert pending_subscription.credits_remaining == 2


def test_first_payment_after_preapproval_activation_does_not_renew(session, shop, pending_subscription, gateway, now):
    gateway.preapprovals["pre-1"] = {"id": "pre-1", "status": "authorized"}
    gateway.payments["PAY-1"] = {"id": "PAY-1", "status": "approved", "preapproval_id": "pre-1"}

    reconcile_subscription_notification(session, shop.id, {"type": "subscription_preapproval", "data": {"id": "pre-1"}}, gateway, now)
    session.refresh(pending_subscription)
    pending_subscription.credits_remaining = 3
    session.add(pending_subscription)
    session.commit()

    outcome = reconcile_subscription_notification(
        session, shop.id, {"type": "payment", "data": {"id": "PAY-1"}}, gateway, now + timedelta(minutes=1)
    )

    assert outcome == payment_webhooks.UPDATED
    session.refresh(pending_subscription)
    assert pending_subscription.credits_remaining == 3
    assert pending_subscription.last_payment_id == "PAY-1"


def test_expired_subscription_renews_on_payment(session, shop, plan, make_subscription, gateway, now):
    subscription = make_subscription(status="expired", credits_remaining=0, mercadopago_preapproval_id="pre-9")
    gateway.preapprovals["pre-9"] = {"id": "pre-9", "status": "authorized"}
    gateway.payments["PAY-9"] = {"id": "PAY-9", "status": "approved", "preapproval_id": "pre-9"}

    outcome = reconcile_subscription_notification(session, shop.id, {"type": "payment", "data": {"id": "PAY-9"}}, gateway, now)

    assert outcome == payment_webhooks.RENEWED
    session.refresh(subscription)
    assert subscription.status == "active"
    assert subscription.credits_remaining == plan.total_credits


@pytest.mark.parametrize("mp_status", ["paused", "cancelled"])
def test_paused_or_cancelled_turns_off_auto_renew(session, shop, make_subscription, gateway, now, mp_status):
    subscription = make_subscription(credits_remaining=2, mercadopago_preapproval_id="pre-1")
    gateway.preapprovals["pre-1"] = {"id": "pre-1", "status": mp_status}
    notification = {"type": "subscription_preapproval", "data": {"id": "pre-1"}}

    assert reconcile_subscription_notification(session, shop.id, notification, gateway, now) == payment_webhooks.UPDATED
    session.refresh(subscription)
    assert subscription.auto_renew is False
    assert subscription.status == "active"
    assert subscription.credits_remaining == 2

    assert reconcile_subscription_notification(session, shop.id, notification, gateway, now) == payment_webhooks.UNCHANGED


def test_resolves_by_external_reference_and_stores_preapproval(session, shop, make_subscription, gateway, now):
    subscription = make_subscription(status="pending", credits_remaining=0)
    gateway.preapprovals["pre-new"] = {
        "id": "pre-new",
        "status": "authorized",
        "external_reference": json.dumps({"subscriptionId": subscription.id}),
    }

    outcome = reconcile_subscription_notification(
        session, shop.id, {"type": "subscription_preapproval", "data": {"id": "pre-new"}}, gateway, now
    )

    assert outcome == payment_webhooks.ACTIVATED
    session.refresh(subscription)
    assert subscription.mercadopago_preapproval_id == "pre-new"


def test_unknown_preapproval_is_unmatched(session, shop, gateway, now):
    gateway.preapprovals["ghost"] = {"id": "ghost", "status": "authorized", "external_reference": "not-json"}

    outcome = reconcile_subscription_notification(
        session, shop.id, {"type": "subscription_preapproval", "data": {"id": "ghost"}}, gateway, now
    )
    assert outcome == payment_webhooks.UNMATCHED


def test_one_time_payment_on_subscription_webhook_is_ignored(session, shop, gateway, now):
    gateway.payments["P1"] = {"id": "P1", "status": "approved", "external_reference": "1"}

    outcome = reconcile_subscription_notification(session, shop.id, {"type": "payment", "data": {"id": "P1"}}, gateway, now)
    assert outcome == payment_webhooks.IGNORED


def test_manually_activated_subscription_renews_on_next_charge(session, shop, plan, pending_subscription, gateway, now):
    credit_service.activate_manually(session, shop.id, pending_subscription.id, now)
    session.refresh(pending_subscription)
    assert pending_subscription.awaiting_first_charge is False

    pending_subscription.credits_remaining = 0
    session.add(pending_subscription)
    session.commit()

    gateway.preapprovals["pre-1"] = {"id": "pre-1", "status": "authorized"}
    gateway.payments["PAY-NEXT"] = {"id": "PAY-NEXT", "status": "approved", "preapproval_id": "pre-1"}
    later = now + timedelta(days=31)

    outcome = reconcile_subscription_notification(
        session, shop.id, {"type": "payment", "data": {"id": "PAY-NEXT"}}, gateway, later
    )

    assert outcome == payment_webhooks.RENEWED
    session.refresh(pending_subscription)
    assert pending_subscription.credits_remaining == plan.total_credits
    assert pending_subscription.end_date == later + timedelta(days=plan.duration_in_days)
    assert pending_subscription.last_payment_id == "PAY-NEXT"


def test_only_the_first_charge_after_preapproval_activation_is_absorbed(session, shop, plan, pending_subscription, gateway, now):
    gateway.preapprovals["pre-1"] = {"id": "pre-1", "status": "authorized"}
    gateway.payments["PAY-1"] = {"id": "PAY-1", "status": "approved", "preapproval_id": "pre-1"}
    gateway.payments["PAY-2"] = {"id": "PAY-2", "status": "approved", "preapproval_id": "pre-1"}

    reconcile_subscription_notification(session, shop.id, {"type": "subscription_preapproval", "data": {"id": "pre-1"}}, gateway, now)
    session.refresh(pending_subscription)
    assert pending_subscription.awaiting_first_charge is True

    first = reconcile_subscription_notification(session, shop.id, {"type": "payment", "data": {"id": "PAY-1"}}, gateway, now)
    assert first == payment_webhooks.UPDATED

    session.refresh(pending_subscription)
    assert pending_subscription.awaiting_first_charge is False
    pending_subscription.credits_remaining = 0
    session.add(pending_subscription)
    session.commit()

    later = now + timedelta(days=30)
    second = reconcile_subscription_notification(session, shop.id, {"type": "payment", "data": {"id": "PAY-2"}}, gateway, later)

    assert second == payment_webhooks.RENEWED
    session.refresh(pending_subscription)
    assert pending_subscription.credits_remaining == plan.total_credits


def test_pending_preapproval_does_not_activate(session, shop, pending_subscription, gateway, now):
    gateway.preapprovals["pre-1"] = {"id": "pre-1", "status": "pending"}

    outcome = reconcile_subscription_notification(
        session, shop.id, {"type": "subscription_preapproval", "data": {"id": "pre-1"}}, gateway, now
    )

    assert outcome == payment_webhooks.UNCHANGED
    session.refresh(pending_subscription)
    assert pending_subscription.status == "pending"
    assert pending_subscription.credits_remaining == 0


# =========================
# IDS DESCONHECIDOS NO PROCESSADOR
# =========================

def test_payment_missing_at_processor_is_unmatched(session, shop, pending_booking, gateway):
    outcome = handle_booking_payment_notification(session, shop.id, _payment_notification("GONE"), gateway)

    assert outcome == payment_webhooks.UNMATCHED
    session.refresh(pending_booking)
    assert pending_booking.status == "pending_payment"


@pytest.mark.parametrize(
    "notification",
    [
        {"type": "payment", "data": {"id": "GONE"}},
        {"type": "subscription_preapproval", "data": {"id": "pre-gone"}},
        {"type": "subscription_authorized_payment", "data": {"id": "AP-gone"}},
    ],
)
def test_subscription_reference_missing_at_processor_is_unmatched(session, shop, gateway, now, notification):
    outcome = reconcile_subscription_notification(session, shop.id, notification, gateway, now)
    assert outcome == payment_webhooks.UNMATCHED


def test_other_processor_failures_still_raise(session, shop, gateway):
    class Unavailable:
        def get_payment(self, payment_id):
            raise UpstreamException("Falha na comunicação com o Mercado Pago.", details={"status": 503})

    with pytest.raises(UpstreamException):
        handle_booking_payment_notification(session, shop.id, _payment_notification("P1"), Unavailable())
