"""
Worker ARQ com as rotinas agendadas.

    arq barberflow.worker.WorkerSettings

Horários em UTC (America/Sao_Paulo = UTC-3).
"""

import asyncio
import logging
import random
import time
from urllib.parse import urlparse

from arq.connections import RedisSettings
from arq.cron import cron
from sqlmodel import Session

from barberflow.config import REDIS_URL
from barberflow.database import engine
from barberflow.services import reminders, sweeps
from barberflow.services.whatsapp import get_whatsapp_client

logger = logging.getLogger(__name__)


def get_redis_settings() -> RedisSettings:
    if not REDIS_URL:
        return RedisSettings()

    parsed = urlparse(REDIS_URL)
    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        password=parsed.password,
        ssl=parsed.scheme == "rediss",
        conn_timeout=15,
        conn_retry_delay=1,
    )


def _message_pause():
    # gateway do WhatsApp bloqueia rajadas
    time.sleep(random.uniform(5, 15))


def _run(job, *args, **kwargs):
    with Session(engine) as session:
        return job(session, *args, **kwargs)


async def complete_past_bookings_task(ctx):
    logger.info("Starting past bookings sweep")
    return await asyncio.to_thread(_run, sweeps.complete_past_bookings)


async def cancel_unpaid_bookings_task(ctx):
    return await asyncio.to_thread(_run, sweeps.cancel_unpaid_bookings)


async def expire_subscriptions_task(ctx):
    logger.info("Starting subscription expiry sweep")
    return await asyncio.to_thread(_run, sweeps.expire_lapsed_subscriptions)


async def morning_reminders_task(ctx):
    return await asyncio.to_thread(
        _run, reminders.send_daily_reminders, get_whatsapp_client(), 8, pause=_message_pause
    )


async def afternoon_reminders_task(ctx):
    return await asyncio.to_thread(
        _run, reminders.send_daily_reminders, get_whatsapp_client(), 13, pause=_message_pause
    )


async def return_reminders_task(ctx):
    logger.info("Starting return reminders")
    return await asyncio.to_thread(
        _run, reminders.send_return_reminders, get_whatsapp_client(), pause=_message_pause
    )


class WorkerSettings:
    functions = [
        complete_past_bookings_task,
        cancel_unpaid_bookings_task,
        expire_subscriptions_task,
        morning_reminders_task,
        afternoon_reminders_task,
        return_reminders_task,
    ]
    redis_settings = get_redis_settings()

    job_timeout = 3600
    max_tries = 1

    cron_jobs = [
        cron(complete_past_bookings_task, hour=3, minute=0),  # 00:00 BRT
        cron(cancel_unpaid_bookings_task, minute=set(range(0, 60, 5))),  # a cada 5 min
        cron(expire_subscriptions_task, hour=3, minute=10),  # 00:10 BRT
        cron(morning_reminders_task, hour=11, minute=0),  # 08:00 BRT
        cron(afternoon_reminders_task, hour=16, minute=0),  # 13:00 BRT
        cron(return_reminders_task, weekday="tue", hour=14, minute=0),  # terça 11:00 BRT
    ]
