"""Textos das mensagens enviadas aos clientes."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from barberflow.config import LOCAL_TZ

_tz = ZoneInfo(LOCAL_TZ)


def to_local(dt: datetime) -> datetime:
    # armazenado como UTC naive
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(_tz)


def format_booking_time(dt: datetime) -> str:
    return to_local(dt).strftime("%d/%m/%Y às %H:%M")


def format_phone(phone: str) -> str:
    digits = "".join(ch for ch in (phone or "") if ch.isdigit())
    if len(digits) == 11:
        return f"({digits[:2]}) {digits[2:7]}-{digits[7:]}"
    if len(digits) == 10:
        return f"({digits[:2]}) {digits[2:6]}-{digits[6:]}"
    return phone or ""


def booking_confirmation(customer_name, shop, booking_time: datetime) -> str:
    text = (
        f"Olá, {customer_name}!\n\n"
        f"Seu agendamento na {shop.name} foi confirmado com sucesso para o dia "
        f"{format_booking_time(booking_time)} ✅\n\n"
        f"Para mais informações, entre em contato com a barbearia: {format_phone(shop.contact)}"
    )
    address = shop.address_line()
    if address:
        text += f"\nEndereço: {address}"
    return text + "\n\nNosso time te aguarda! 💈"


def booking_canceled(customer_name, shop, booking_time: datetime) -> str:
    return (
        f"Olá, {customer_name}.\n\n"
        f"Seu agendamento na {shop.name} para o dia {format_booking_time(booking_time)} foi cancelado ❌\n\n"
        f"Para remarcar, entre em contato com a barbearia: {format_phone(shop.contact)}"
    )


def daily_reminder(customer_name, shop, barber_name, booking_time: datetime, morning: bool) -> str:
    greeting = "Bom dia" if morning else "Olá"
    text = (
        f"{greeting}, {customer_name}! Lembrete do seu agendamento hoje na {shop.name} "
        f"às {to_local(booking_time).strftime('%H:%M')} com {barber_name} ✅\n\n"
        f"Para mais informações, entre em contato com a barbearia: {format_phone(shop.contact)} 📱"
    )
    address = shop.address_line()
    if address:
        text += f"\nEndereço: {address}💈"
    return text


def return_reminder(template: str, customer_name: str, days: int) -> str:
    return template.replace("{name}", customer_name).replace("{days}", str(days))
