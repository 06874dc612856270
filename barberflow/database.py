import logging

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from barberflow.config import DATABASE_URL

logger = logging.getLogger(__name__)


def build_engine(url: str):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


engine = build_engine(DATABASE_URL)


def create_db_and_tables(bind=None):
    # registra todas as tabelas no metadata
    from barberflow.models import (  # noqa: F401
        admin_user,
        barber,
        barbershop,
        booking,
        business_hours,
        customer,
        plan,
        product,
        service,
        subscription,
        time_block,
    )

    SQLModel.metadata.create_all(bind or engine)
    logger.info("Database tables ready")


def get_session():
    with Session(engine) as session:
        yield session
