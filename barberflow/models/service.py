from typing import Optional
from sqlmodel import SQLModel, Field


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str
    description: Optional[str] = None
    duration_minutes: int
    price: float

    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)

    # serviço de plano: só pode ser usado consumindo crédito de assinatura
    is_plan_service: bool = False
    plan_id: Optional[int] = Field(default=None, foreign_key="plan.id")


class ServiceCreate(SQLModel):
    name: str
    description: Optional[str] = None
    duration_minutes: int = Field(gt=0)
    price: float = Field(ge=0)
    is_plan_service: bool = False
    plan_id: Optional[int] = None
