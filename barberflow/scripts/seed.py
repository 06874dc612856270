from datetime import time

from sqlmodel import Session, select

from barberflow.database import create_db_and_tables, engine
from barberflow.models.admin_user import AdminUser
from barberflow.models.barber import Barber
from barberflow.models.barbershop import Barbershop
from barberflow.models.business_hours import BusinessHours
from barberflow.models.plan import Plan
from barberflow.models.service import Service
from barberflow.core.security import get_password_hash


SHOP_SLUG = "barbearia-teste"
ADMIN_EMAIL = "admin@barbearia-teste.com"
ADMIN_PASSWORD = "admin123"


def main():
    create_db_and_tables()

    with Session(engine) as session:
        # 1) barbearia
        shop = session.exec(select(Barbershop).where(Barbershop.slug == SHOP_SLUG)).first()
        if not shop:
            shop = Barbershop(
                name="Barbearia Teste",
                slug=SHOP_SLUG,
                contact="11987654321",
                street="Rua das Tesouras",
                number="100",
                district="Centro",
                city="São Paulo",
                loyalty_enabled=True,
            )
            session.add(shop)
            session.flush()

        # 2) admin
        admin = session.exec(select(AdminUser).where(AdminUser.email == ADMIN_EMAIL)).first()
        if not admin:
            session.add(
                AdminUser(
                    name="Admin",
                    email=ADMIN_EMAIL,
                    password_hash=get_password_hash(ADMIN_PASSWORD),
                    role="admin",
                    barbershop_id=shop.id,
                )
            )

        # 3) barbeiros, plano e serviços (se não existir)
        existing_barber = session.exec(select(Barber).where(Barber.barbershop_id == shop.id)).first()
        if not existing_barber:
            barbers = [
                Barber(name="João", barbershop_id=shop.id, commission=40),
                Barber(name="Pedro", barbershop_id=shop.id, commission=40),
            ]
            session.add_all(barbers)
            session.flush()

            # segunda a sábado, 09:00-18:00 com almoço 12:00-13:00
            for barber in barbers:
                for weekday in range(6):
                    session.add(
                        BusinessHours(
                            barber_id=barber.id,
                            barbershop_id=shop.id,
                            weekday=weekday,
                            open_time=time(9, 0),
                            close_time=time(18, 0),
                            lunch_start=time(12, 0),
                            lunch_end=time(13, 0),
                        )
                    )

        plan = session.exec(select(Plan).where(Plan.barbershop_id == shop.id)).first()
        if not plan:
            plan = Plan(name="Clube do Corte", price=99.0, duration_in_days=30, total_credits=4, barbershop_id=shop.id)
            session.add(plan)
            session.flush()

        existing_service = session.exec(select(Service).where(Service.barbershop_id == shop.id)).first()
        if not existing_service:
            session.add_all(
                [
                    Service(name="Corte", duration_minutes=30, price=40.0, barbershop_id=shop.id),
                    Service(name="Barba", duration_minutes=20, price=30.0, barbershop_id=shop.id),
                    Service(name="Corte + Barba", duration_minutes=50, price=65.0, barbershop_id=shop.id),
                    Service(
                        name="Corte (plano)",
                        duration_minutes=30,
                        price=0.0,
                        barbershop_id=shop.id,
                        is_plan_service=True,
                        plan_id=plan.id,
                    ),
                ]
            )

        session.commit()

        print("✅ Seed concluído!")
        print(f"Barbearia: {shop.id} ({shop.slug})")
        print(f"Admin: {ADMIN_EMAIL} / {ADMIN_PASSWORD}")
        print("Barbeiros: João/Pedro (seg-sáb 09h-18h); Serviços: Corte/Barba/Corte+Barba/Corte (plano)")


if __name__ == "__main__":
    main()
