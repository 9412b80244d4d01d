from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# NUMERIC(12,2) and a 32-bit INTEGER column
MAX_PRICE = 9_999_999_999.99
MAX_STOCK = 2_147_483_647


class ProductInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=250)
    price: float = Field(ge=0, le=MAX_PRICE, allow_inf_nan=False)
    stock: int = Field(ge=0, le=MAX_STOCK)
    barcode: str | None = Field(default=None, max_length=64)


class ProductOut(BaseModel):
    id: str
    name: str
    price: float
    stock: int
    barcode: str
    created_at: datetime
    updated_at: datetime
