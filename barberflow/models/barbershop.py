from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field


class Barbershop(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str
    slug: str = Field(index=True, unique=True)
    contact: Optional[str] = None

    # endereço
    street: str = ""
    number: str = ""
    district: str = ""
    city: str = ""

    # PAGAMENTOS (token do Mercado Pago da própria barbearia)
    mercadopago_access_token: Optional[str] = None
    payments_enabled: bool = False
    require_online_payment: bool = False

    # FIDELIDADE
    loyalty_enabled: bool = False
    loyalty_target_count: int = 5
    loyalty_reward_description: str = "1 Corte Grátis"

    # LEMBRETE DE RETORNO
    return_reminder_enabled: bool = False
    return_reminder_days: int = 30
    return_reminder_message: str = (
        "Olá, {name}! Já faz {days} dias desde o seu último corte. Que tal agendar um horário? 💈"
    )

    created_at: datetime = Field(default_factory=datetime.utcnow)

    def address_line(self) -> str:
        if not self.street:
            return ""
        return f"{self.street}, {self.number} - {self.district}"
