from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from kiosco.schemas.catalog import MAX_STOCK, ProductOut


class PaymentMethod(str, Enum):
    CASH = "CASH"
    MERCADO_PAGO = "MERCADO_PAGO"


class SaleItemInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: UUID = Field(alias="productId")
    qty: int = Field(gt=0, le=MAX_STOCK)


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[SaleItemInput] = Field(min_length=1)
    payment_method: PaymentMethod = Field(default=PaymentMethod.CASH, alias="paymentMethod")


class CheckoutResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sale_id: str = Field(serialization_alias="saleId")
    total: float


class SaleOut(BaseModel):
    id: str
    created_at: datetime
    total: float
    payment_method: PaymentMethod
    created_by: str | None


class SaleItemOut(BaseModel):
    id: str
    product_id: str
    product_name: str
    barcode: str
    qty: int
    unit_price: float
    line_total: float


class SaleDetail(SaleOut):
    items: list[SaleItemOut]


class DashboardKpis(BaseModel):
    sold_today: float
    sold_week: float
    sold_month: float
    sales_count_today: int
    ticket_average_today: float


class TopProduct(BaseModel):
    product_id: str
    name: str
    qty_sold: int
    total_sold: float


class RecentSale(BaseModel):
    id: str
    created_at: datetime
    total: float
    items_count: int
    payment_method: PaymentMethod


class DashboardSummary(BaseModel):
    kpis: DashboardKpis
    top_products: list[TopProduct]
    recent_sales: list[RecentSale]
    low_stock_products: list[ProductOut]
