from typing import Optional
from sqlmodel import SQLModel, Field


class Barber(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str
    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)

    # percentual de comissão
    commission: float = 0


class BarberCreate(SQLModel):
    name: str
    commission: float = Field(default=0, ge=0, le=100)
