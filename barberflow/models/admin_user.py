from typing import Optional
from sqlmodel import SQLModel, Field


class AdminUserBase(SQLModel):
    name: str
    email: str = Field(index=True, unique=True)
    role: str = "admin"  # "admin" ou "barber"


class AdminUser(AdminUserBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    password_hash: str

    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)
