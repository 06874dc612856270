from typing import Optional
from datetime import date, datetime
from sqlmodel import SQLModel, Field


class TimeBlock(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)
    barber_id: int = Field(foreign_key="barber.id", index=True)

    start_time: datetime = Field(index=True)
    end_time: datetime = Field(index=True)

    reason: str = "Bloqueio"


class TimeBlockCreate(SQLModel):
    barber_id: int
    start_time: datetime
    end_time: datetime
    reason: str = "Bloqueio"


class BlockedDay(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)
    # None = barbearia inteira
    barber_id: Optional[int] = Field(default=None, foreign_key="barber.id", index=True)

    day: date = Field(index=True)
    reason: Optional[str] = None


class BlockedDayCreate(SQLModel):
    day: date
    barber_id: Optional[int] = None
    reason: Optional[str] = None
