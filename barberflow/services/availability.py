"""
Agenda dos barbeiros: expediente semanal, bloqueios e horários livres.

Expediente e intervalo são horários locais da barbearia; agendamentos e
bloqueios ficam em UTC naive, como o resto do banco.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlmodel import Session, col, or_, select

from barberflow.config import LOCAL_TZ
from barberflow.core.exceptions import NotFoundException, ValidationException
from barberflow.core.lifecycle import BookingStatus
from barberflow.models.barber import Barber
from barberflow.models.booking import Booking
from barberflow.models.business_hours import BusinessHours, BusinessHoursUpdate
from barberflow.models.service import Service
from barberflow.models.time_block import BlockedDay, BlockedDayCreate, TimeBlock, TimeBlockCreate
from barberflow.services.booking_service import to_utc_naive
from barberflow.services.messages import to_local

logger = logging.getLogger(__name__)

# passo dos horários oferecidos no calendário
SLOT_STEP = timedelta(minutes=15)

_tz = ZoneInfo(LOCAL_TZ)


def _overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Retorna True se [a_start, a_end) sobrepõe [b_start, b_end)."""
    return a_start < b_end and a_end > b_start


def _local_to_utc(day: date, at: time) -> datetime:
    return datetime.combine(day, at, tzinfo=_tz).astimezone(timezone.utc).replace(tzinfo=None)


def get_barber(session: Session, barbershop_id: int, barber_id: int) -> Barber:
    barber = session.get(Barber, barber_id)
    if not barber or barber.barbershop_id != barbershop_id:
        raise NotFoundException("Barbeiro não encontrado.")
    return barber


# =========================
# EXPEDIENTE
# =========================

def list_business_hours(session: Session, barbershop_id: int, barber_id: int) -> List[BusinessHours]:
    get_barber(session, barbershop_id, barber_id)
    return session.exec(
        select(BusinessHours)
        .where(BusinessHours.barber_id == barber_id)
        .order_by(BusinessHours.weekday)
    ).all()


def _validate_hours(data: BusinessHoursUpdate) -> None:
    if data.is_closed:
        return

    if data.open_time is None or data.close_time is None:
        raise ValidationException("open_time e close_time são obrigatórios quando is_closed=false")

    if data.close_time <= data.open_time:
        raise ValidationException("close_time deve ser maior que open_time")

    if (data.lunch_start is None) != (data.lunch_end is None):
        raise ValidationException("Informe início e fim do intervalo.")

    if data.lunch_start is not None and data.lunch_end <= data.lunch_start:
        raise ValidationException("lunch_end deve ser maior que lunch_start")


def set_business_hours(
    session: Session,
    barbershop_id: int,
    barber_id: int,
    weekday: int,
    data: BusinessHoursUpdate,
) -> BusinessHours:
    """weekday: 0=segunda ... 6=domingo. Cria ou substitui o expediente do dia."""
    get_barber(session, barbershop_id, barber_id)

    if weekday < 0 or weekday > 6:
        raise ValidationException("weekday deve ser 0..6")
    _validate_hours(data)

    hours = session.exec(
        select(BusinessHours).where(
            BusinessHours.barber_id == barber_id,
            BusinessHours.weekday == weekday,
        )
    ).first()
    if hours is None:
        hours = BusinessHours(barber_id=barber_id, barbershop_id=barbershop_id, weekday=weekday)

    for field, value in data.model_dump().items():
        setattr(hours, field, value)

    session.add(hours)
    session.commit()
    session.refresh(hours)
    logger.info("Business hours of barber %s weekday %s updated", barber_id, weekday)
    return hours


# =========================
# BLOQUEIOS
# =========================

def create_time_block(session: Session, barbershop_id: int, data: TimeBlockCreate) -> TimeBlock:
    get_barber(session, barbershop_id, data.barber_id)

    start_time = to_utc_naive(data.start_time)
    end_time = to_utc_naive(data.end_time)
    if end_time <= start_time:
        raise ValidationException("end_time deve ser maior que start_time")

    block = TimeBlock(
        barbershop_id=barbershop_id,
        barber_id=data.barber_id,
        start_time=start_time,
        end_time=end_time,
        reason=data.reason,
    )
    session.add(block)
    session.commit()
    session.refresh(block)
    logger.info("Time block %s created for barber %s", block.id, block.barber_id)
    return block


def list_time_blocks(
    session: Session,
    barbershop_id: int,
    barber_id: Optional[int] = None,
    since: Optional[datetime] = None,
) -> List[TimeBlock]:
    query = select(TimeBlock).where(TimeBlock.barbershop_id == barbershop_id)
    if barber_id is not None:
        query = query.where(TimeBlock.barber_id == barber_id)
    if since is not None:
        query = query.where(TimeBlock.end_time > to_utc_naive(since))
    return session.exec(query.order_by(TimeBlock.start_time)).all()


def delete_time_block(session: Session, barbershop_id: int, block_id: int) -> None:
    block = session.get(TimeBlock, block_id)
    if not block or block.barbershop_id != barbershop_id:
        raise NotFoundException("Bloqueio não encontrado.")

    session.delete(block)
    session.commit()


def create_blocked_day(session: Session, barbershop_id: int, data: BlockedDayCreate) -> BlockedDay:
    if data.barber_id is not None:
        get_barber(session, barbershop_id, data.barber_id)

    blocked = BlockedDay(barbershop_id=barbershop_id, **data.model_dump())
    session.add(blocked)
    session.commit()
    session.refresh(blocked)
    logger.info("Day %s blocked in shop %s (barber=%s)", blocked.day, barbershop_id, blocked.barber_id)
    return blocked


def list_blocked_days(session: Session, barbershop_id: int) -> List[BlockedDay]:
    return session.exec(
        select(BlockedDay)
        .where(BlockedDay.barbershop_id == barbershop_id)
        .order_by(BlockedDay.day)
    ).all()


def delete_blocked_day(session: Session, barbershop_id: int, blocked_day_id: int) -> None:
    blocked = session.get(BlockedDay, blocked_day_id)
    if not blocked or blocked.barbershop_id != barbershop_id:
        raise NotFoundException("Dia bloqueado não encontrado.")

    session.delete(blocked)
    session.commit()


# =========================
# HORÁRIOS LIVRES
# =========================

def _busy_intervals(
    session: Session,
    barber_id: int,
    day_start: datetime,
    day_end: datetime,
) -> List[Tuple[datetime, datetime]]:
    """Agendamentos não cancelados (com a duração do serviço) e bloqueios que tocam o expediente."""
    busy: List[Tuple[datetime, datetime]] = []

    rows = session.exec(
        select(Booking, Service)
        .join(Service, Service.id == Booking.service_id)
        .where(
            Booking.barber_id == barber_id,
            # um agendamento longo do dia anterior ainda pode ocupar o começo do expediente
            Booking.time > day_start - timedelta(days=1),
            Booking.time < day_end,
            Booking.status != BookingStatus.CANCELED.value,
        )
    ).all()
    for booking, service in rows:
        busy.append((booking.time, booking.time + timedelta(minutes=service.duration_minutes)))

    blocks = session.exec(
        select(TimeBlock).where(
            TimeBlock.barber_id == barber_id,
            TimeBlock.start_time < day_end,
            TimeBlock.end_time > day_start,
        )
    ).all()
    for block in blocks:
        busy.append((block.start_time, block.end_time))

    return busy


def free_slots(
    session: Session,
    barbershop_id: int,
    barber_id: int,
    day: date,
    service_id: int,
    now: Optional[datetime] = None,
) -> Dict:
    now = now or datetime.utcnow()

    get_barber(session, barbershop_id, barber_id)
    service = session.get(Service, service_id)
    if not service or service.barbershop_id != barbershop_id:
        raise NotFoundException("Serviço não encontrado.")
    duration = timedelta(minutes=service.duration_minutes)

    result = {
        "barber_id": barber_id,
        "service_id": service_id,
        "day": day.isoformat(),
        "duration_minutes": service.duration_minutes,
        "slot_step_minutes": int(SLOT_STEP.total_seconds() // 60),
        "is_blocked": False,
        "is_closed": False,
        "reason": None,
        "slots": [],
    }

    blocked = session.exec(
        select(BlockedDay).where(
            BlockedDay.barbershop_id == barbershop_id,
            BlockedDay.day == day,
            or_(col(BlockedDay.barber_id).is_(None), BlockedDay.barber_id == barber_id),
        )
    ).first()
    if blocked:
        result.update(is_blocked=True, reason=blocked.reason or "Dia indisponível para agendamento.")
        return result

    hours = session.exec(
        select(BusinessHours).where(
            BusinessHours.barber_id == barber_id,
            BusinessHours.weekday == day.weekday(),
        )
    ).first()
    if not hours or hours.is_closed or hours.open_time is None or hours.close_time is None:
        result.update(is_closed=True, reason="Sem horário configurado ou fechado")
        return result

    day_start = _local_to_utc(day, hours.open_time)
    day_end = _local_to_utc(day, hours.close_time)

    busy = _busy_intervals(session, barber_id, day_start, day_end)
    if hours.lunch_start is not None and hours.lunch_end is not None:
        busy.append((_local_to_utc(day, hours.lunch_start), _local_to_utc(day, hours.lunch_end)))

    slots = []
    current = day_start
    while current + duration <= day_end:
        slot_end = current + duration
        taken = any(_overlaps(current, slot_end, start, end) for start, end in busy)
        if current >= now and not taken:
            local_start = to_local(current)
            slots.append({"time": local_start.strftime("%H:%M"), "start": local_start, "end": to_local(slot_end)})
        current += SLOT_STEP

    result["slots"] = slots
    return result
