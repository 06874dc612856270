from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field


class Subscription(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    customer_id: int = Field(foreign_key="customer.id", index=True)
    plan_id: int = Field(foreign_key="plan.id", index=True)
    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)

    start_date: datetime = Field(default_factory=datetime.utcnow)
    end_date: datetime

    status: str = Field(default="active", index=True)
    # pending | active | expired | canceled

    credits_remaining: int = Field(ge=0)

    # Mercado Pago
    mercadopago_preapproval_id: Optional[str] = Field(default=None, index=True)
    auto_renew: bool = True
    last_payment_date: Optional[datetime] = None
    next_payment_date: Optional[datetime] = None
    # último pagamento já aplicado (evita renovar duas vezes)
    last_payment_id: Optional[str] = None
    # ativada pelo preapproval, a primeira cobrança ainda não chegou
    awaiting_first_charge: bool = False

    created_at: datetime = Field(default_factory=datetime.utcnow)


class SubscriptionCheckout(SQLModel):
    plan_id: int
