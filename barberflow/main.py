import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

from barberflow.config import LOG_LEVEL
from barberflow.database import create_db_and_tables, engine
from barberflow.core.exceptions import DomainException
from barberflow.routers import auth
from barberflow.routers import availability
from barberflow.routers import barbershops
from barberflow.routers import bookings
from barberflow.routers import catalog
from barberflow.routers import customers
from barberflow.routers import events
from barberflow.routers import payments
from barberflow.routers import products
from barberflow.routers import subscriptions
from barberflow.services.sweeps import complete_past_bookings

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    create_db_and_tables()

    # agendamentos que venceram enquanto o servidor estava parado
    with Session(engine) as session:
        complete_past_bookings(session)

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="barberflow API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException):
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Erro interno do servidor"})


app.include_router(auth.router)
# antes das rotas /barbershops/{shop_id}/..., para /barbershops/slug/{slug} casar primeiro
app.include_router(barbershops.router)
app.include_router(bookings.router)
app.include_router(payments.router)
app.include_router(subscriptions.router)
app.include_router(customers.router)
app.include_router(catalog.router)
app.include_router(availability.router)
app.include_router(products.router)
app.include_router(events.router)


@app.get("/")
def root():
    return {"message": "API barberflow funcionando 🚀"}
