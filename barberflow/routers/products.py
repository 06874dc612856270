from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from barberflow.database import get_session
from barberflow.models.admin_user import AdminUser
from barberflow.models.product import ProductCreate, ProductUpdate, StockMovementCreate
from barberflow.core.security import get_current_admin, require_admin_role, require_shop_access
from barberflow.services import stock_service


router = APIRouter(prefix="/barbershops/{shop_id}/products", tags=["products"])


@router.get("")
def list_products(
    shop_id: int,
    category: Optional[str] = None,
    status: Optional[str] = "ativo",
    search: Optional[str] = None,
    low_stock: bool = False,
    page: int = 1,
    limit: int = 20,
    session: Session = Depends(get_session),
):
    return stock_service.list_products(
        session, shop_id, category=category, status=status, search=search,
        low_stock=low_stock, page=page, limit=limit,
    )


# antes de /{product_id}
@router.get("/reports/low-stock")
def low_stock_report(
    shop_id: int,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    return stock_service.low_stock_report(session, shop_id)


@router.get("/{product_id}")
def get_product(
    shop_id: int,
    product_id: int,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    return stock_service.get_product(session, shop_id, product_id)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    shop_id: int,
    data: ProductCreate,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    require_admin_role(current_admin)
    return stock_service.create_product(session, shop_id, data)


@router.put("/{product_id}")
def update_product(
    shop_id: int,
    product_id: int,
    data: ProductUpdate,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    require_admin_role(current_admin)
    return stock_service.update_product(session, shop_id, product_id, data)


@router.delete("/{product_id}")
def delete_product(
    shop_id: int,
    product_id: int,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    require_admin_role(current_admin)
    stock_service.delete_product(session, shop_id, product_id)
    return {"message": "Produto deletado com sucesso"}


# =========================
# ESTOQUE
# =========================

@router.post("/{product_id}/stock")
def move_stock(
    shop_id: int,
    product_id: int,
    data: StockMovementCreate,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    return stock_service.move_stock(session, shop_id, product_id, data)


@router.get("/{product_id}/movements")
def list_movements(
    shop_id: int,
    product_id: int,
    page: int = 1,
    limit: int = 20,
    session: Session = Depends(get_session),
    current_admin: AdminUser = Depends(get_current_admin),
):
    require_shop_access(current_admin, shop_id)
    return stock_service.list_movements(session, shop_id, product_id, page=page, limit=limit)
