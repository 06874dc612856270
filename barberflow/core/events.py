"""
Barramento de eventos por barbearia (alimenta o SSE do painel).

Implementação em memória, para uma instância. Para várias instâncias basta
outra classe com a mesma interface (subscribe/unsubscribe/publish) sobre um
broker real.
"""

import asyncio
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Listener:
    id: int
    tenant_id: int
    queue: asyncio.Queue
    loop: asyncio.AbstractEventLoop
    closed: bool = field(default=False)

    async def get(self) -> Dict[str, Any]:
        return await self.queue.get()


class EventBroker:
    def __init__(self, max_queue_size: int = 100):
        self._listeners: Dict[int, list] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.max_queue_size = max_queue_size

    def subscribe(self, tenant_id: int, loop: Optional[asyncio.AbstractEventLoop] = None) -> Listener:
        loop = loop or asyncio.get_running_loop()
        listener = Listener(
            id=next(self._ids),
            tenant_id=tenant_id,
            queue=asyncio.Queue(maxsize=self.max_queue_size),
            loop=loop,
        )
        with self._lock:
            self._listeners.setdefault(tenant_id, []).append(listener)
            total = len(self._listeners[tenant_id])
        logger.info("[SSE] listener %s connected to barbershop %s (total=%s)", listener.id, tenant_id, total)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(listener.tenant_id, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(listener.tenant_id, None)
        listener.closed = True
        logger.info("[SSE] listener %s disconnected from barbershop %s", listener.id, listener.tenant_id)

    def listener_count(self, tenant_id: int) -> int:
        with self._lock:
            return len(self._listeners.get(tenant_id, []))

    def publish(self, tenant_id: int, event: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """Entrega o evento a todos os listeners da barbearia. Pode ser chamado de qualquer thread."""
        message = {"event": event, "data": payload or {}}
        with self._lock:
            listeners = list(self._listeners.get(tenant_id, []))

        for listener in listeners:
            try:
                listener.loop.call_soon_threadsafe(_offer, listener, message)
            except RuntimeError:
                # loop já encerrado
                self.unsubscribe(listener)

        if listeners:
            logger.debug("[SSE] '%s' sent to %s listener(s) of barbershop %s", event, len(listeners), tenant_id)
        return len(listeners)


def _offer(listener: Listener, message: Dict[str, Any]) -> None:
    if listener.closed:
        return
    try:
        listener.queue.put_nowait(message)
    except asyncio.QueueFull:
        logger.warning("[SSE] queue full for listener %s, dropping '%s'", listener.id, message["event"])


broker = EventBroker()


def get_broker() -> EventBroker:
    return broker
