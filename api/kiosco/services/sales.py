from typing import Any

from sqlalchemy import text
from sqlalchemy.orm import Session

from kiosco.core.errors import SaleNotFound
from kiosco.db.sqltypes import typed_text

SALE_COLUMNS = "id, created_at, total, payment_method, created_by"


def list_sales(db: Session, limit: int = 50) -> list[dict[str, Any]]:
    rows = db.execute(
        typed_text(
            f"""
            SELECT {SALE_COLUMNS}
            FROM sales
            ORDER BY created_at DESC
            LIMIT :limit
            """,
            columns=("created_at",),
        ),
        {"limit": limit},
    ).mappings().all()
    return [dict(row) for row in rows]


def get_sale(db: Session, sale_id: str) -> dict[str, Any]:
    sale = db.execute(
        typed_text(f"SELECT {SALE_COLUMNS} FROM sales WHERE id = :id", columns=("created_at",)),
        {"id": sale_id},
    ).mappings().first()
    if not sale:
        raise SaleNotFound(details=f"sale_id={sale_id}")

    items = db.execute(
        text(
            """
            SELECT
              si.id,
              si.product_id,
              p.name AS product_name,
              p.barcode,
              si.qty,
              si.unit_price,
              si.line_total
            FROM sale_items si
            JOIN products p ON p.id = si.product_id
            WHERE si.sale_id = :sale_id
            ORDER BY p.name ASC
            """
        ),
        {"sale_id": sale_id},
    ).mappings().all()

    return {**sale, "items": [dict(item) for item in items]}
