from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Engine,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    true,
)

metadata = MetaData()

profiles = Table(
    "profiles",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("username", String(100), nullable=False, unique=True),
    Column("full_name", Text, nullable=False, server_default=""),
    Column("role", String(20), nullable=False, server_default="seller"),
    Column("password_hash", Text, nullable=False),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("last_login_at", DateTime(timezone=True)),
    CheckConstraint("role IN ('admin', 'seller')", name="ck_profiles_role"),
)

products = Table(
    "products",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", Text, nullable=False),
    Column("price", Numeric(12, 2), nullable=False),
    Column("stock", Integer, nullable=False),
    Column("barcode", String(64), nullable=False, unique=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("price >= 0", name="ck_products_price"),
    CheckConstraint("stock >= 0", name="ck_products_stock"),
    Index("idx_products_stock", "stock"),
)

sales = Table(
    "sales",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("total", Numeric(12, 2), nullable=False),
    Column("payment_method", String(20), nullable=False, server_default="CASH"),
    Column("created_by", String(36), ForeignKey("profiles.id"), nullable=False),
    CheckConstraint("total >= 0", name="ck_sales_total"),
    CheckConstraint("payment_method IN ('CASH', 'MERCADO_PAGO')", name="ck_sales_payment_method"),
    Index("idx_sales_created_at", "created_at"),
    Index("idx_sales_created_by", "created_by"),
)

sale_items = Table(
    "sale_items",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("sale_id", String(36), ForeignKey("sales.id", ondelete="CASCADE"), nullable=False),
    Column("product_id", String(36), ForeignKey("products.id"), nullable=False),
    Column("qty", Integer, nullable=False),
    Column("unit_price", Numeric(12, 2), nullable=False),
    Column("line_total", Numeric(12, 2), nullable=False),
    CheckConstraint("qty > 0", name="ck_sale_items_qty"),
    CheckConstraint("unit_price >= 0", name="ck_sale_items_unit_price"),
    CheckConstraint("line_total >= 0", name="ck_sale_items_line_total"),
    Index("idx_sale_items_sale_id", "sale_id"),
    Index("idx_sale_items_product_id", "product_id"),
)


def init_schema(engine: Engine) -> None:
    metadata.create_all(engine)
