from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field


PRODUCT_CATEGORIES = ("pomada", "gel", "shampoo", "condicionador", "minoxidil", "oleo", "cera", "spray", "outros")
MOVEMENT_TYPES = ("entrada", "saida", "ajuste", "perda", "venda")


class ProductBase(SQLModel):
    name: str
    description: Optional[str] = None
    category: str = "outros"
    brand: Optional[str] = None

    purchase_price: float = Field(ge=0)
    sale_price: float = Field(ge=0)

    stock_minimum: int = Field(default=5, ge=0)
    status: str = "ativo"  # ativo | inativo | descontinuado


class Product(ProductBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    stock_current: int = Field(default=0, ge=0)
    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)


class ProductCreate(ProductBase):
    stock_current: int = Field(default=0, ge=0)


class ProductUpdate(SQLModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    purchase_price: Optional[float] = Field(default=None, ge=0)
    sale_price: Optional[float] = Field(default=None, ge=0)
    stock_minimum: Optional[int] = Field(default=None, ge=0)
    status: Optional[str] = None


class StockMovement(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    product_id: int = Field(foreign_key="product.id", index=True)
    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)

    type: str  # entrada | saida | ajuste | perda | venda
    quantity: int
    reason: str

    # AUDITORIA
    previous_stock: int
    new_stock: int

    unit_cost: Optional[float] = None
    total_cost: Optional[float] = None
    notes: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)


class StockMovementCreate(SQLModel):
    type: str
    quantity: int
    reason: str
    unit_cost: Optional[float] = None
    notes: Optional[str] = None
