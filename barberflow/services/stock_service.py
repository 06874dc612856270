"""Estoque de produtos da barbearia e o histórico de movimentações."""

import logging
import math
from typing import Optional

from sqlalchemy import delete, func, or_
from sqlmodel import Session, select

from barberflow.core.exceptions import NotFoundException, ValidationException
from barberflow.models.product import (
    MOVEMENT_TYPES,
    Product,
    ProductCreate,
    ProductUpdate,
    StockMovement,
    StockMovementCreate,
)

logger = logging.getLogger(__name__)

OUTGOING_TYPES = ("saida", "perda", "venda")


def _pagination(page: int, limit: int, total: int) -> dict:
    return {"current": page, "pages": math.ceil(total / limit) if limit else 0, "total": total}


# =========================
# PRODUTOS
# =========================

def get_product(session: Session, barbershop_id: int, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if not product or product.barbershop_id != barbershop_id:
        raise NotFoundException("Produto não encontrado")
    return product


def create_product(session: Session, barbershop_id: int, data: ProductCreate) -> Product:
    product = Product(**data.model_dump(), barbershop_id=barbershop_id)
    session.add(product)
    session.flush()

    if product.stock_current > 0:
        session.add(StockMovement(
            product_id=product.id,
            barbershop_id=barbershop_id,
            type="entrada",
            quantity=product.stock_current,
            reason="Estoque inicial",
            previous_stock=0,
            new_stock=product.stock_current,
            unit_cost=product.purchase_price,
            total_cost=product.purchase_price * product.stock_current,
            notes="Cadastro inicial do produto",
        ))

    session.commit()
    session.refresh(product)
    return product


def list_products(
    session: Session,
    barbershop_id: int,
    category: Optional[str] = None,
    status: Optional[str] = "ativo",
    search: Optional[str] = None,
    low_stock: bool = False,
    page: int = 1,
    limit: int = 20,
) -> dict:
    filters = [Product.barbershop_id == barbershop_id]
    if category and category != "all":
        filters.append(Product.category == category)
    if status and status != "all":
        filters.append(Product.status == status)
    if search:
        pattern = f"%{search}%"
        filters.append(or_(Product.name.ilike(pattern), Product.brand.ilike(pattern)))
    if low_stock:
        filters.append(Product.stock_current <= Product.stock_minimum)

    total = session.exec(select(func.count(Product.id)).where(*filters)).one()
    products = session.exec(
        select(Product)
        .where(*filters)
        .order_by(Product.name)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return {"products": products, "pagination": _pagination(page, limit, total)}


def update_product(session: Session, barbershop_id: int, product_id: int, data: ProductUpdate) -> Product:
    product = get_product(session, barbershop_id, product_id)

    # estoque só muda por movimentação
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(product, key, value)

    session.add(product)
    session.commit()
    session.refresh(product)
    return product


def delete_product(session: Session, barbershop_id: int, product_id: int) -> None:
    product = get_product(session, barbershop_id, product_id)

    session.exec(delete(StockMovement).where(StockMovement.product_id == product.id))
    session.delete(product)
    session.commit()


def low_stock_report(session: Session, barbershop_id: int) -> dict:
    products = session.exec(
        select(Product).where(
            Product.barbershop_id == barbershop_id,
            Product.status == "ativo",
            Product.stock_current <= Product.stock_minimum,
        )
    ).all()
    return {"total": len(products), "products": products}


# =========================
# MOVIMENTAÇÕES
# =========================

def move_stock(session: Session, barbershop_id: int, product_id: int, data: StockMovementCreate) -> dict:
    if data.type not in MOVEMENT_TYPES:
        raise ValidationException("Tipo de movimentação inválido", details={"allowed": list(MOVEMENT_TYPES)})

    if not data.quantity or data.quantity <= 0:
        raise ValidationException("Quantidade deve ser maior que zero")

    product = get_product(session, barbershop_id, product_id)

    previous_stock = product.stock_current
    if data.type == "entrada":
        new_stock = previous_stock + data.quantity
    elif data.type in OUTGOING_TYPES:
        new_stock = max(0, previous_stock - data.quantity)
    else:
        # ajuste: a quantidade é o valor final
        new_stock = data.quantity

    product.stock_current = new_stock

    unit_cost = data.unit_cost or product.purchase_price
    movement = StockMovement(
        product_id=product.id,
        barbershop_id=barbershop_id,
        type=data.type,
        quantity=new_stock - previous_stock if data.type == "ajuste" else data.quantity,
        reason=data.reason,
        previous_stock=previous_stock,
        new_stock=new_stock,
        unit_cost=unit_cost,
        total_cost=unit_cost * data.quantity,
        notes=data.notes,
    )

    session.add(product)
    session.add(movement)
    session.commit()
    session.refresh(product)
    session.refresh(movement)

    logger.info("Stock %s for product %s: %s -> %s", data.type, product.id, previous_stock, new_stock)
    return {"product": product, "movement": movement}


def list_movements(session: Session, barbershop_id: int, product_id: int, page: int = 1, limit: int = 20) -> dict:
    filters = [StockMovement.product_id == product_id, StockMovement.barbershop_id == barbershop_id]

    total = session.exec(select(func.count(StockMovement.id)).where(*filters)).one()
    movements = session.exec(
        select(StockMovement)
        .where(*filters)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return {"movements": movements, "pagination": _pagination(page, limit, total)}
