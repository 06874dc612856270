from fastapi import APIRouter, Depends, status
from sqlmodel import Session, select

from barberflow.database import get_session
from barberflow.models.admin_user import AdminUser
from barberflow.models.barber import Barber, BarberCreate
from barberflow.models.plan import Plan, PlanCreate
from barberflow.models.service import Service, ServiceCreate
from barberflow.core.exceptions import ValidationException
from barberflow.core.security import get_current_admin, require_admin_role, require_shop_access


router = APIRouter(prefix="/barbershops/{shop_id}", tags=["catalog"])


# =========================
# BARBEIROS
# =========================

@router.post("/barbers", status_code=status.HTTP_201_CREATED)
def create_barber(
    shop_id: int,
    data: BarberCreate,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    require_admin_role(current_admin)

    barber = Barber(**data.model_dump(), barbershop_id=shop_id)
    session.add(barber)
    session.commit()
    session.refresh(barber)

    return barber


@router.get("/barbers")
def list_barbers(shop_id: int, session: Session = Depends(get_session)):
    return session.exec(
        select(Barber).where(Barber.barbershop_id == shop_id)
    ).all()


# =========================
# SERVIÇOS
# =========================

@router.post("/services", status_code=status.HTTP_201_CREATED)
def create_service(
    shop_id: int,
    data: ServiceCreate,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    require_admin_role(current_admin)

    if data.is_plan_service:
        plan = session.get(Plan, data.plan_id) if data.plan_id else None
        if not plan or plan.barbershop_id != shop_id:
            raise ValidationException("Serviço de plano precisa de um plano desta barbearia.")

    service = Service(**data.model_dump(), barbershop_id=shop_id)
    session.add(service)
    session.commit()
    session.refresh(service)

    return service


@router.get("/services")
def list_services(shop_id: int, session: Session = Depends(get_session)):
    return session.exec(
        select(Service).where(Service.barbershop_id == shop_id)
    ).all()


# =========================
# PLANOS
# =========================

@router.post("/plans", status_code=status.HTTP_201_CREATED)
def create_plan(
    shop_id: int,
    data: PlanCreate,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    require_admin_role(current_admin)

    plan = Plan(**data.model_dump(), barbershop_id=shop_id)
    session.add(plan)
    session.commit()
    session.refresh(plan)

    return plan


@router.get("/plans")
def list_plans(shop_id: int, session: Session = Depends(get_session)):
    return session.exec(
        select(Plan).where(Plan.barbershop_id == shop_id)
    ).all()
