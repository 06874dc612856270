"""
Ledger de créditos das assinaturas (planos).

Consumo de crédito é um UPDATE condicional: o WHERE revalida status, validade
e saldo no momento da escrita, então o saldo nunca fica negativo mesmo com
requisições concorrentes.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import update
from sqlmodel import Session, select

from barberflow.config import PUBLIC_API_URL, PUBLIC_SITE_URL
from barberflow.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UpstreamException,
    ValidationException,
)
from barberflow.core.lifecycle import SubscriptionEvent, SubscriptionStatus, transition
from barberflow.models.barbershop import Barbershop
from barberflow.models.customer import Customer
from barberflow.models.plan import Plan
from barberflow.models.subscription import Subscription

logger = logging.getLogger(__name__)


def find_usable_subscription(
    session: Session,
    customer_id: int,
    plan_id: int,
    barbershop_id: int,
    now: datetime,
) -> Optional[Subscription]:
    return session.exec(
        select(Subscription).where(
            Subscription.customer_id == customer_id,
            Subscription.plan_id == plan_id,
            Subscription.barbershop_id == barbershop_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date >= now,
            Subscription.credits_remaining > 0,
        )
    ).first()


def consume_credit(session: Session, subscription_id: int, now: datetime) -> bool:
    """Desconta exatamente um crédito. Não faz commit; False se a assinatura não é mais utilizável."""
    result = session.exec(
        update(Subscription)
        .where(
            Subscription.id == subscription_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date >= now,
            Subscription.credits_remaining > 0,
        )
        .values(credits_remaining=Subscription.credits_remaining - 1)
    )
    consumed = result.rowcount == 1
    if consumed:
        logger.info("Credit consumed from subscription %s", subscription_id)
    return consumed


def _apply_new_period(subscription: Subscription, plan: Plan, now: datetime, payment_id: Optional[str]) -> None:
    subscription.credits_remaining = plan.total_credits
    subscription.start_date = now
    subscription.end_date = now + timedelta(days=plan.duration_in_days)
    subscription.last_payment_date = now
    subscription.next_payment_date = now + relativedelta(months=1)
    subscription.awaiting_first_charge = False
    if payment_id is not None:
        subscription.last_payment_id = payment_id


def activate(subscription: Subscription, plan: Plan, now: datetime, payment_id: Optional[str] = None) -> None:
    """Primeiro pagamento (ou ativação manual): pending/expired -> active com período cheio."""
    subscription.status = transition(subscription.status, SubscriptionEvent.ACTIVATE).value
    _apply_new_period(subscription, plan, now, payment_id)
    logger.info("Subscription %s activated (credits=%s)", subscription.id, subscription.credits_remaining)


def renew(subscription: Subscription, plan: Plan, now: datetime, payment_id: Optional[str] = None) -> None:
    """Pagamento recorrente: reseta créditos e estende a validade a partir de agora."""
    subscription.status = transition(subscription.status, SubscriptionEvent.RENEW).value
    _apply_new_period(subscription, plan, now, payment_id)
    logger.info("Subscription %s renewed (credits=%s)", subscription.id, subscription.credits_remaining)


def cancel_renewal(
    session: Session,
    barbershop_id: int,
    subscription_id: int,
    customer: Customer,
    gateway_factory=None,
) -> Subscription:
    """Cliente cancela a renovação: para de renovar, mas mantém status e créditos até o fim do período."""
    subscription = session.get(Subscription, subscription_id)
    if not subscription or subscription.barbershop_id != barbershop_id:
        raise NotFoundException("Assinatura não encontrada.")

    if subscription.customer_id != customer.id:
        raise ForbiddenException("Você não tem permissão para cancelar esta assinatura.")

    if not subscription.auto_renew:
        raise ValidationException("Esta assinatura já está com renovação cancelada.")

    if subscription.mercadopago_preapproval_id and gateway_factory is not None:
        shop = session.get(Barbershop, barbershop_id)
        if shop and shop.mercadopago_access_token:
            try:
                with gateway_factory(shop.mercadopago_access_token) as gateway:
                    gateway.cancel_recurring_plan(subscription.mercadopago_preapproval_id)
                logger.info("Preapproval %s canceled at processor", subscription.mercadopago_preapproval_id)
            except UpstreamException as e:
                # segue mesmo se falhar no processador
                logger.error("Failed to cancel preapproval %s: %s", subscription.mercadopago_preapproval_id, e.details)

    subscription.auto_renew = False
    session.add(subscription)
    session.commit()
    session.refresh(subscription)
    return subscription


def activate_manually(session: Session, barbershop_id: int, subscription_id: int, now: datetime) -> Subscription:
    """Ativação pelo admin (pagamento fora do processador)."""
    subscription = session.exec(
        select(Subscription).where(
            Subscription.id == subscription_id,
            Subscription.barbershop_id == barbershop_id,
        )
    ).first()
    if not subscription:
        raise NotFoundException("Assinatura não encontrada.")

    if subscription.status == SubscriptionStatus.ACTIVE.value:
        raise ValidationException("Assinatura já está ativa.")

    plan = session.get(Plan, subscription.plan_id)
    activate(subscription, plan, now)

    session.add(subscription)
    session.commit()
    session.refresh(subscription)
    return subscription


def begin_checkout(
    session: Session,
    barbershop_id: int,
    plan_id: int,
    customer: Customer,
    gateway_factory,
    now: datetime,
) -> dict:
    """Cria a assinatura pendente e o preapproval no Mercado Pago."""
    shop = session.get(Barbershop, barbershop_id)
    if not shop:
        raise NotFoundException("Barbearia não encontrada.")

    plan = session.get(Plan, plan_id)
    if not plan or plan.barbershop_id != barbershop_id:
        raise NotFoundException("Plano não encontrado ou não pertence a esta barbearia.")

    if not shop.payments_enabled or not shop.mercadopago_access_token:
        raise ValidationException("Pagamento online não está habilitado para esta barbearia.")

    existing = session.exec(
        select(Subscription).where(
            Subscription.customer_id == customer.id,
            Subscription.plan_id == plan_id,
            Subscription.barbershop_id == barbershop_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        )
    ).first()
    if existing:
        raise ConflictException("Você já possui uma assinatura ativa para este plano.")

    subscription = Subscription(
        customer_id=customer.id,
        plan_id=plan.id,
        barbershop_id=barbershop_id,
        start_date=now,
        end_date=now + timedelta(days=plan.duration_in_days),
        status=SubscriptionStatus.PENDING.value,
        credits_remaining=plan.total_credits,
        auto_renew=True,
    )
    session.add(subscription)
    session.commit()
    session.refresh(subscription)

    external_reference = json.dumps({
        "subscriptionId": subscription.id,
        "customerId": customer.id,
        "customerPhone": customer.phone,
        "planId": plan.id,
        "barbershopId": barbershop_id,
    })

    with gateway_factory(shop.mercadopago_access_token) as gateway:
        result = gateway.create_recurring_plan(
            reason=f"Plano {plan.name} - {shop.name}",
            amount=plan.price,
            payer_email=f"cliente_{customer.id}@barberflow.com.br",
            back_url=f"{PUBLIC_SITE_URL}/{shop.slug}/assinatura-sucesso",
            external_reference=external_reference,
            notification_url=(
                f"{PUBLIC_API_URL}/barbershops/{barbershop_id}/subscriptions/webhook?barbershopId={barbershop_id}"
            ),
        )

    subscription.mercadopago_preapproval_id = str(result["id"])
    session.add(subscription)
    session.commit()

    logger.info("Subscription %s created pending (preapproval %s)", subscription.id, result["id"])
    return {"init_point": result.get("init_point"), "subscription_id": subscription.id}


def expire_lapsed(session: Session, now: datetime) -> dict:
    """Assinaturas ativas vencidas: canceled sem renovação automática, expired com."""
    summary = {"expired": 0, "canceled": 0}

    for auto_renew, target, key in (
        (False, transition(SubscriptionStatus.ACTIVE, SubscriptionEvent.CANCEL), "canceled"),
        (True, transition(SubscriptionStatus.ACTIVE, SubscriptionEvent.EXPIRE), "expired"),
    ):
        result = session.exec(
            update(Subscription)
            .where(
                Subscription.status == SubscriptionStatus.ACTIVE.value,
                Subscription.end_date < now,
                Subscription.auto_renew == auto_renew,
            )
            .values(status=target.value)
        )
        summary[key] = result.rowcount

    session.commit()
    if summary["expired"] or summary["canceled"]:
        logger.info("Lapsed subscriptions: %s", summary)
    return summary


def credit_summary(session: Session, customer_id: int, barbershop_id: int, now: datetime) -> list:
    rows = session.exec(
        select(Subscription, Plan)
        .join(Plan, Plan.id == Subscription.plan_id)
        .where(
            Subscription.customer_id == customer_id,
            Subscription.barbershop_id == barbershop_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date >= now,
            Subscription.credits_remaining > 0,
        )
    ).all()

    return [
        {
            "plan_id": plan.id,
            "plan_name": plan.name,
            "credits_remaining": sub.credits_remaining,
            "total_credits": plan.total_credits,
            "end_date": sub.end_date,
        }
        for sub, plan in rows
    ]
