import asyncio
import json
import logging

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from barberflow.models.admin_user import AdminUser
from barberflow.core.events import EventBroker, get_broker
from barberflow.core.security import get_current_admin, require_shop_access

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/barbershops/{shop_id}", tags=["events"])

PING_SECONDS = 15


@router.get("/events")
async def stream_events(
    shop_id: int,
    current_admin: AdminUser = Depends(get_current_admin),
    broker: EventBroker = Depends(get_broker),
):
    """Stream SSE do painel: new_booking, booking_updated, booking_deleted."""
    require_shop_access(current_admin, shop_id)

    listener = broker.subscribe(shop_id, asyncio.get_running_loop())

    async def event_generator():
        try:
            yield {"event": "connected", "data": json.dumps({"barbershop_id": shop_id})}
            while True:
                message = await listener.get()
                yield {"event": message["event"], "data": json.dumps(message["data"], default=str)}
        finally:
            broker.unsubscribe(listener)

    return EventSourceResponse(
        event_generator(),
        ping=PING_SECONDS,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
