from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field, UniqueConstraint


class Customer(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str
    # chave natural: um cliente por telefone
    phone: str = Field(index=True, unique=True)

    # histórico de agendamentos = Booking.customer_id; marca o último adicionado
    last_booking_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)


class LoyaltyEntry(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("customer_id", "barbershop_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)

    customer_id: int = Field(foreign_key="customer.id", index=True)
    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)

    count: int = 0
    rewards: int = Field(default=0, ge=0)


class ReturnReminder(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    customer_id: int = Field(foreign_key="customer.id", index=True)
    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)

    sent_at: datetime = Field(default_factory=datetime.utcnow, index=True)
