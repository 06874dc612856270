from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from barberflow.database import get_session
from barberflow.models.admin_user import AdminUser
from barberflow.models.booking import AdminBookingCreate, BookingCreate, BookingStatusUpdate
from barberflow.core.events import EventBroker, get_broker
from barberflow.core.security import get_current_admin, require_shop_access
from barberflow.services import booking_service
from barberflow.services.whatsapp import Notifier, get_notifier


router = APIRouter(prefix="/barbershops/{shop_id}", tags=["bookings"])


# =========================
# CLIENTE (autoatendimento)
# =========================

@router.post("/bookings", status_code=status.HTTP_201_CREATED)
def create_booking(
    shop_id: int,
    data: BookingCreate,
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    events: EventBroker = Depends(get_broker),
):
    return booking_service.create_booking(
        session, shop_id, data, admin=False, notifier=notifier, events=events
    )


# =========================
# ADMIN
# =========================

@router.post("/admin/bookings", status_code=status.HTTP_201_CREATED)
def create_admin_booking(
    shop_id: int,
    data: AdminBookingCreate,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
    events: EventBroker = Depends(get_broker),
):
    require_shop_access(current_admin, shop_id)

    # entrada manual não notifica o cliente
    return booking_service.create_booking(
        session, shop_id, data, admin=True, events=events
    )


@router.get("/bookings")
def list_bookings(
    shop_id: int,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    return booking_service.list_bookings(session, shop_id)


@router.put("/bookings/{booking_id}/status")
def update_booking_status(
    shop_id: int,
    booking_id: int,
    data: BookingStatusUpdate,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
    notifier: Notifier = Depends(get_notifier),
    events: EventBroker = Depends(get_broker),
):
    require_shop_access(current_admin, shop_id)
    return booking_service.update_status(
        session, shop_id, booking_id, data.status, notifier=notifier, events=events
    )


@router.delete("/bookings/{booking_id}")
def delete_booking(
    shop_id: int,
    booking_id: int,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
    notifier: Notifier = Depends(get_notifier),
    events: EventBroker = Depends(get_broker),
):
    require_shop_access(current_admin, shop_id)
    booking_service.delete_booking(
        session, shop_id, booking_id, notifier=notifier, events=events
    )
    return {"message": "Agendamento deletado com sucesso"}
