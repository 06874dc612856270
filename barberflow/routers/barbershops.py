from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from barberflow.database import get_session
from barberflow.models.barbershop import Barbershop
from barberflow.core.exceptions import NotFoundException


router = APIRouter(prefix="/barbershops", tags=["barbershops"])

# nunca sai da API pública
PRIVATE_FIELDS = {"mercadopago_access_token"}


def public_view(shop: Barbershop) -> dict:
    return shop.model_dump(exclude=PRIVATE_FIELDS)


# =========================
# PÁGINA PÚBLICA
# =========================

@router.get("/slug/{slug}")
def get_barbershop_by_slug(slug: str, session: Session = Depends(get_session)):
    shop = session.exec(select(Barbershop).where(Barbershop.slug == slug)).first()
    if not shop:
        raise NotFoundException("Barbearia não encontrada")
    return public_view(shop)


@router.get("/{shop_id}")
def get_barbershop(shop_id: int, session: Session = Depends(get_session)):
    shop = session.get(Barbershop, shop_id)
    if not shop:
        raise NotFoundException("Barbearia não encontrada")
    return public_view(shop)
