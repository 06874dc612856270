from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field


class Plan(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str
    description: Optional[str] = None
    price: float

    # duração do período (ex: 30 para mensal)
    duration_in_days: int = 30
    # créditos (usos) concedidos por período
    total_credits: int = Field(default=1, ge=1)

    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)


class PlanCreate(SQLModel):
    name: str
    description: Optional[str] = None
    price: float = Field(gt=0)
    duration_in_days: int = Field(default=30, gt=0)
    total_credits: int = Field(default=1, ge=1)
