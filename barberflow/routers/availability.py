from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from barberflow.database import get_session
from barberflow.models.admin_user import AdminUser
from barberflow.models.business_hours import BusinessHoursUpdate
from barberflow.models.time_block import BlockedDayCreate, TimeBlockCreate
from barberflow.core.security import get_current_admin, require_shop_access
from barberflow.services import availability


router = APIRouter(prefix="/barbershops/{shop_id}", tags=["availability"])


# =========================
# HORÁRIOS LIVRES (público)
# GET /barbershops/1/barbers/2/free-slots?day=2024-06-03&service_id=1
# =========================

@router.get("/barbers/{barber_id}/free-slots")
def get_free_slots(
    shop_id: int,
    barber_id: int,
    day: date,
    service_id: int,
    session: Session = Depends(get_session),
):
    return availability.free_slots(session, shop_id, barber_id, day, service_id)


# =========================
# EXPEDIENTE
# =========================

@router.get("/barbers/{barber_id}/business-hours")
def list_business_hours(shop_id: int, barber_id: int, session: Session = Depends(get_session)):
    return availability.list_business_hours(session, shop_id, barber_id)


@router.put("/barbers/{barber_id}/business-hours/{weekday}")
def upsert_business_hours(
    shop_id: int,
    barber_id: int,
    weekday: int,
    data: BusinessHoursUpdate,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    """
    weekday: 0=segunda ... 6=domingo
    """
    require_shop_access(current_admin, shop_id)
    return availability.set_business_hours(session, shop_id, barber_id, weekday, data)


# =========================
# BLOQUEIOS DE HORÁRIO
# =========================

@router.get("/time-blocks")
def list_time_blocks(
    shop_id: int,
    barber_id: Optional[int] = None,
    since: Optional[datetime] = None,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    return availability.list_time_blocks(session, shop_id, barber_id, since)


@router.post("/time-blocks", status_code=status.HTTP_201_CREATED)
def create_time_block(
    shop_id: int,
    data: TimeBlockCreate,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    return availability.create_time_block(session, shop_id, data)


@router.delete("/time-blocks/{block_id}")
def delete_time_block(
    shop_id: int,
    block_id: int,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    availability.delete_time_block(session, shop_id, block_id)
    return {"message": "Bloqueio removido"}


# =========================
# DIAS BLOQUEADOS
# =========================

@router.get("/blocked-days")
def list_blocked_days(
    shop_id: int,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    return availability.list_blocked_days(session, shop_id)


@router.post("/blocked-days", status_code=status.HTTP_201_CREATED)
def create_blocked_day(
    shop_id: int,
    data: BlockedDayCreate,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    return availability.create_blocked_day(session, shop_id, data)


@router.delete("/blocked-days/{blocked_day_id}")
def delete_blocked_day(
    shop_id: int,
    blocked_day_id: int,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    availability.delete_blocked_day(session, shop_id, blocked_day_id)
    return {"message": "Dia desbloqueado"}
