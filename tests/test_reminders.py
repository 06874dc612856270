from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from barberflow.models.booking import Booking
from barberflow.models.customer import Customer, ReturnReminder
from barberflow.services import reminders


# terça, 08:00 em São Paulo
NOW = datetime(2024, 6, 4, 11, 0)


class FakeWhatsApp:
    def __init__(self):
        self.sent = []

    def send_message(self, phone, text):
        self.sent.append((phone, text))
        return True


@pytest.fixture
def whatsapp():
    return FakeWhatsApp()


@pytest.fixture
def add_booking(session, shop, barber, service):
    def _add(customer, time, status="booked"):
        booking = Booking(
            barbershop_id=shop.id,
            barber_id=barber.id,
            service_id=service.id,
            customer_id=customer.id,
            time=time,
            status=status,
        )
        session.add(booking)
        session.commit()
        return booking

    return _add


@pytest.fixture
def add_customer(session):
    def _add(name, phone):
        customer = Customer(name=name, phone=phone)
        session.add(customer)
        session.commit()
        session.refresh(customer)
        return customer

    return _add


def test_local_day_bounds():
    start, end = reminders.local_day_bounds(NOW)
    assert start == datetime(2024, 6, 4, 3, 0)
    assert end == datetime(2024, 6, 5, 3, 0)


def test_daily_reminders_split_by_shift(session, customer, add_booking, whatsapp):
    add_booking(customer, datetime(2024, 6, 4, 12, 0))  # 09:00 local
    add_booking(customer, datetime(2024, 6, 4, 18, 0))  # 15:00 local
    add_booking(customer, datetime(2024, 6, 4, 13, 0), status="confirmed")
    add_booking(customer, datetime(2024, 6, 5, 4, 0))  # amanhã 01:00 local

    assert reminders.send_daily_reminders(session, whatsapp, 8, now=NOW) == 1
    assert whatsapp.sent[0][1].startswith("Bom dia, Maria!")
    assert "09:00" in whatsapp.sent[0][1]

    assert reminders.send_daily_reminders(session, whatsapp, 13, now=NOW) == 1
    assert whatsapp.sent[1][1].startswith("Olá, Maria!")
    assert "15:00" in whatsapp.sent[1][1]


def test_return_reminders_rules(session, shop, add_customer, add_booking, whatsapp):
    shop.return_reminder_enabled = True
    shop.return_reminder_days = 30
    shop.return_reminder_message = "Oi {name}, já são {days} dias!"
    session.add(shop)
    session.commit()

    long_ago = NOW - timedelta(days=40)

    due = add_customer("Ana", "11900000001")
    add_booking(due, long_ago, status="completed")

    recent = add_customer("Bia", "11900000002")
    add_booking(recent, NOW - timedelta(days=10), status="completed")

    scheduled = add_customer("Caio", "11900000003")
    add_booking(scheduled, long_ago, status="completed")
    add_booking(scheduled, NOW + timedelta(days=3))

    nagged = add_customer("Duda", "11900000004")
    add_booking(nagged, long_ago, status="completed")
    for month in (2, 3, 4):
        session.add(ReturnReminder(customer_id=nagged.id, barbershop_id=shop.id, sent_at=datetime(2024, month, 5)))

    this_month = add_customer("Edu", "11900000005")
    add_booking(this_month, long_ago, status="completed")
    session.add(ReturnReminder(customer_id=this_month.id, barbershop_id=shop.id, sent_at=datetime(2024, 6, 2, 12, 0)))

    last_month = add_customer("Fabi", "11900000006")
    add_booking(last_month, long_ago, status="completed")
    session.add(ReturnReminder(customer_id=last_month.id, barbershop_id=shop.id, sent_at=datetime(2024, 5, 20)))
    session.commit()

    sent = reminders.send_return_reminders(session, whatsapp, now=NOW)

    assert sent == 2
    assert sorted(phone for phone, _ in whatsapp.sent) == ["11900000001", "11900000006"]
    assert "Oi Ana, já são 30 dias!" in [text for _, text in whatsapp.sent]

    logged = session.exec(select(ReturnReminder).where(ReturnReminder.customer_id == due.id)).all()
    assert len(logged) == 1
    assert logged[0].sent_at == NOW


def test_return_reminders_skip_disabled_shops(session, customer, add_booking, whatsapp):
    add_booking(customer, NOW - timedelta(days=90), status="completed")

    assert reminders.send_return_reminders(session, whatsapp, now=NOW) == 0
    assert whatsapp.sent == []
