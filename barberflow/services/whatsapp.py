"""
Envio de mensagens WhatsApp pela Evolution API.

Fire-and-forget: falhas são logadas e nunca propagadas para quem chamou.
"""

import logging
import re
from typing import Optional

import httpx
from fastapi import BackgroundTasks

from barberflow.config import EVOLUTION_API_KEY, EVOLUTION_API_URL, EVOLUTION_INSTANCE, WHATSAPP_TIMEOUT

logger = logging.getLogger(__name__)


class WhatsAppClient:
    def __init__(
        self,
        base_url: Optional[str] = EVOLUTION_API_URL,
        api_key: Optional[str] = EVOLUTION_API_KEY,
        instance: str = EVOLUTION_INSTANCE,
        timeout: float = WHATSAPP_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.instance = instance
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def send_message(self, phone: str, text: str) -> bool:
        if not self.configured:
            logger.error("WhatsApp not configured: EVOLUTION_API_URL and EVOLUTION_API_KEY are required")
            return False

        clean_phone = re.sub(r"\D", "", phone or "")
        if not clean_phone:
            logger.debug("No phone number provided, skipping WhatsApp message")
            return False

        url = f"{self.base_url.rstrip('/')}/message/sendText/{self.instance}"
        payload = {"number": f"55{clean_phone}", "linkPreview": False, "text": text}

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(url, json=payload, headers={"apikey": self.api_key})
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "WhatsApp send failed (%s) to 55%s: %s",
                e.response.status_code,
                clean_phone,
                e.response.text[:200],
            )
            return False
        except httpx.HTTPError as e:
            logger.error("WhatsApp connection error: %s", e)
            return False

        logger.info("WhatsApp message sent to 55%s", clean_phone)
        return True


class Notifier:
    """Enfileira mensagens para depois da resposta HTTP (BackgroundTasks)."""

    def __init__(self, client: WhatsAppClient, background_tasks: Optional[BackgroundTasks] = None):
        self.client = client
        self.background_tasks = background_tasks

    def send(self, phone: str, text: str) -> None:
        if self.background_tasks is not None:
            self.background_tasks.add_task(self.client.send_message, phone, text)
        else:
            self.client.send_message(phone, text)


_client = WhatsAppClient()


def get_whatsapp_client() -> WhatsAppClient:
    return _client


def get_notifier(background_tasks: BackgroundTasks) -> Notifier:
    return Notifier(get_whatsapp_client(), background_tasks)
