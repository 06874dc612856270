from typing import Literal, Optional
import re
from datetime import datetime
from pydantic import field_validator
from sqlmodel import SQLModel, Field

PHONE_RE = re.compile(r"^\d{10,11}$")


def make_slot_key(barber_id: int, time: datetime) -> str:
    return f"{barber_id}:{time.isoformat()}"


class Booking(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)
    barber_id: int = Field(foreign_key="barber.id", index=True)
    service_id: int = Field(foreign_key="service.id", index=True)
    customer_id: int = Field(foreign_key="customer.id", index=True)

    time: datetime = Field(index=True)

    # STATUS DO AGENDAMENTO
    status: str = Field(default="booked", index=True)
    # pending_payment | booked | confirmed | completed | canceled

    # STATUS DO PAGAMENTO
    payment_status: Optional[str] = Field(default=None, index=True)
    # pending | approved | failed | canceled | no-payment | plan_credit | loyalty_reward

    # id da preferência no Mercado Pago
    payment_id: Optional[str] = None
    is_payment_mandatory: bool = False

    subscription_used_id: Optional[int] = Field(default=None, foreign_key="subscription.id")
    is_loyalty_reward: bool = False

    # "{barber_id}:{time}" enquanto o horário está ocupado; NULL se cancelado ou forçado
    slot_key: Optional[str] = Field(default=None, unique=True)

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# =========================
# PAYLOADS
# =========================

class BookingCustomer(SQLModel):
    name: str
    phone: str

    @field_validator("phone")
    @classmethod
    def phone_digits(cls, value: str) -> str:
        value = value.strip()
        if value and not PHONE_RE.match(value):
            raise ValueError("Número de telefone inválido (apenas dígitos, 10 ou 11)")
        return value


class BookingCreate(SQLModel):
    barber_id: int
    service_id: int
    customer: BookingCustomer
    time: datetime
    use_loyalty_reward: bool = False


class AdminBookingCreate(BookingCreate):
    # admin pode definir o status inicial e forçar horário ocupado
    status: Optional[Literal["booked", "confirmed", "completed", "canceled"]] = None
    force: bool = False


class BookingStatusUpdate(SQLModel):
    status: Literal["booked", "confirmed", "completed", "canceled"]
