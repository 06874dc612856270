import os

# antes de importar a app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.pop("EVOLUTION_API_URL", None)
os.environ.pop("EVOLUTION_API_KEY", None)

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from barberflow.core.events import EventBroker, get_broker
from barberflow.core.exceptions import UpstreamException
from barberflow.core.security import create_access_token, get_password_hash
from barberflow.database import build_engine, create_db_and_tables, get_session
from barberflow.main import app
from barberflow.models.admin_user import AdminUser
from barberflow.models.barber import Barber
from barberflow.models.barbershop import Barbershop
from barberflow.models.customer import Customer
from barberflow.models.plan import Plan
from barberflow.models.service import Service
from barberflow.models.subscription import Subscription
from barberflow.services.mercadopago import get_gateway_factory
from barberflow.services.whatsapp import get_notifier


# =========================
# DUBLÊS
# =========================

class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send(self, phone, text):
        self.sent.append((phone, text))


class FakeGateway:
    """Mercado Pago em memória. Cada dict simula um GET no processador."""

    def __init__(self):
        self.payments = {}
        self.preapprovals = {}
        self.authorized_payments = {}
        self.tokens = []
        self.created_links = []
        self.created_plans = []
        self.canceled_plans = []
        self.closed = 0
        self.fail_cancel = False

    # fábrica: gateway_factory(token)
    def __call__(self, access_token):
        self.tokens.append(access_token)
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed += 1

    def create_payment_link(self, **kwargs):
        self.created_links.append(kwargs)
        return {"id": f"pref-{len(self.created_links)}", "init_point": "https://mp.test/checkout"}

    def _find(self, store, key):
        try:
            return store[str(key)]
        except KeyError:
            raise UpstreamException("Falha na comunicação com o Mercado Pago.", details={"status": 404})

    def get_payment(self, payment_id):
        return self._find(self.payments, payment_id)

    def create_recurring_plan(self, **kwargs):
        self.created_plans.append(kwargs)
        preapproval_id = f"pre-{len(self.created_plans)}"
        self.preapprovals[preapproval_id] = {
            "id": preapproval_id,
            "status": "pending",
            "external_reference": kwargs["external_reference"],
        }
        return {"id": preapproval_id, "init_point": "https://mp.test/subscribe"}

    def get_recurring_plan(self, preapproval_id):
        return self._find(self.preapprovals, preapproval_id)

    def cancel_recurring_plan(self, preapproval_id):
        if self.fail_cancel:
            raise UpstreamException("Falha na comunicação com o Mercado Pago.", details={"status": 500})
        self.canceled_plans.append(preapproval_id)
        return {"id": preapproval_id, "status": "cancelled"}

    def get_authorized_payment(self, authorized_payment_id):
        return self._find(self.authorized_payments, authorized_payment_id)


# =========================
# BANCO / APP
# =========================

@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def broker():
    return EventBroker()


@pytest.fixture
def client(session, notifier, gateway, broker):
    def get_session_override():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_gateway_factory] = lambda: gateway
    app.dependency_overrides[get_broker] = lambda: broker

    yield TestClient(app)

    app.dependency_overrides.clear()


# =========================
# DADOS
# =========================

@pytest.fixture
def now():
    return datetime(2024, 6, 1, 12, 0)


@pytest.fixture
def shop(session):
    shop = Barbershop(
        name="Barbearia Teste",
        slug="barbearia-teste",
        contact="11987654321",
        street="Rua A",
        number="10",
        district="Centro",
        mercadopago_access_token="shop-token",
        payments_enabled=True,
    )
    session.add(shop)
    session.commit()
    session.refresh(shop)
    return shop


@pytest.fixture
def other_shop(session):
    shop = Barbershop(name="Outra", slug="outra", mercadopago_access_token="other-token")
    session.add(shop)
    session.commit()
    session.refresh(shop)
    return shop


@pytest.fixture
def admin(session, shop):
    user = AdminUser(
        name="Admin",
        email="admin@teste.com",
        password_hash=get_password_hash("senha123"),
        role="admin",
        barbershop_id=shop.id,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def admin_headers(admin):
    token = create_access_token({"sub": admin.email, "kind": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def barber(session, shop):
    barber = Barber(name="João", barbershop_id=shop.id)
    session.add(barber)
    session.commit()
    session.refresh(barber)
    return barber


@pytest.fixture
def service(session, shop):
    service = Service(name="Corte", duration_minutes=30, price=40.0, barbershop_id=shop.id)
    session.add(service)
    session.commit()
    session.refresh(service)
    return service


@pytest.fixture
def plan(session, shop):
    plan = Plan(name="Clube", price=99.0, duration_in_days=30, total_credits=4, barbershop_id=shop.id)
    session.add(plan)
    session.commit()
    session.refresh(plan)
    return plan


@pytest.fixture
def plan_service(session, shop, plan):
    service = Service(
        name="Corte (plano)",
        duration_minutes=30,
        price=0.0,
        barbershop_id=shop.id,
        is_plan_service=True,
        plan_id=plan.id,
    )
    session.add(service)
    session.commit()
    session.refresh(service)
    return service


@pytest.fixture
def customer(session):
    customer = Customer(name="Maria", phone="11912345678")
    session.add(customer)
    session.commit()
    session.refresh(customer)
    return customer


@pytest.fixture
def customer_headers(customer):
    token = create_access_token({"sub": customer.phone, "kind": "customer"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_subscription(session, shop, plan, customer, now):
    def _make(**overrides):
        data = dict(
            customer_id=customer.id,
            plan_id=plan.id,
            barbershop_id=shop.id,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=29),
            status="active",
            credits_remaining=plan.total_credits,
        )
        data.update(overrides)
        subscription = Subscription(**data)
        session.add(subscription)
        session.commit()
        session.refresh(subscription)
        return subscription

    return _make
