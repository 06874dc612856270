from typing import Optional
from datetime import time
from sqlmodel import SQLModel, Field


class BusinessHours(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    barber_id: int = Field(foreign_key="barber.id", index=True)
    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)

    # 0=segunda ... 6=domingo
    weekday: int = Field(index=True)

    is_closed: bool = False

    # horário local da barbearia
    open_time: Optional[time] = None
    close_time: Optional[time] = None

    # intervalo (almoço)
    lunch_start: Optional[time] = None
    lunch_end: Optional[time] = None


class BusinessHoursUpdate(SQLModel):
    is_closed: bool = False
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    lunch_start: Optional[time] = None
    lunch_end: Optional[time] = None
