import logging
import uuid
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kiosco.core.config import settings
from kiosco.core.errors import BarcodeGenerationFailed, BarcodeTaken, ProductInUse, ProductNotFound
from kiosco.core.money import round2
from kiosco.db.sqltypes import typed_text, utcnow
from kiosco.schemas.catalog import ProductInput
from kiosco.services.barcode import barcode_exists, generate_unique_barcode

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = "id, name, price, stock, barcode, created_at, updated_at"
TIMESTAMP_COLUMNS = ("created_at", "updated_at")


def _select_products(db: Session, where: str = "", order_by: str = "", params: dict | None = None):
    sql = f"SELECT {PRODUCT_COLUMNS} FROM products"
    if where:
        sql += f" WHERE {where}"
    if order_by:
        sql += f" ORDER BY {order_by}"
    stmt = typed_text(sql, columns=TIMESTAMP_COLUMNS)
    return db.execute(stmt, params or {}).mappings()


def get_product(db: Session, product_id: str) -> dict[str, Any]:
    row = _select_products(db, "id = :id", params={"id": product_id}).first()
    if not row:
        raise ProductNotFound(product_id)
    return dict(row)


def list_products(db: Session) -> list[dict[str, Any]]:
    return [dict(row) for row in _select_products(db, order_by="created_at DESC, name ASC").all()]


def list_low_stock(db: Session, threshold: int | None = None) -> list[dict[str, Any]]:
    threshold = settings.low_stock_threshold if threshold is None else threshold
    rows = _select_products(
        db,
        "stock <= :threshold",
        order_by="stock ASC, name ASC",
        params={"threshold": threshold},
    ).all()
    return [dict(row) for row in rows]


def find_by_barcode(db: Session, barcode: str) -> dict[str, Any] | None:
    row = _select_products(db, "barcode = :barcode", params={"barcode": barcode.strip()}).first()
    return dict(row) if row else None


def resolve_barcode(db: Session, requested: str | None, product_id: str | None = None) -> str:
    """Use the requested barcode if free, otherwise generate one."""
    barcode = (requested or "").strip()
    if barcode:
        if barcode_exists(db, barcode, exclude_id=product_id):
            raise BarcodeTaken(details=f"barcode={barcode}")
        return barcode

    result = generate_unique_barcode(db)
    if not result.ok:
        logger.error("barcode generation exhausted", extra={"attempts": result.attempts})
        raise BarcodeGenerationFailed(details=f"attempts={result.attempts}")
    return result.barcode


def create_product(db: Session, payload: ProductInput) -> dict[str, Any]:
    product_id = str(uuid.uuid4())
    now = utcnow()

    try:
        barcode = resolve_barcode(db, payload.barcode)
        db.execute(
            typed_text(
                """
                INSERT INTO products (id, name, price, stock, barcode, created_at, updated_at)
                VALUES (:id, :name, :price, :stock, :barcode, :created_at, :updated_at)
                """,
                timestamps=("created_at", "updated_at"),
                money=("price",),
            ),
            {
                "id": product_id,
                "name": payload.name,
                "price": round2(payload.price),
                "stock": payload.stock,
                "barcode": barcode,
                "created_at": now,
                "updated_at": now,
            },
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise BarcodeTaken(details=str(exc.orig)) from exc
    except Exception:
        db.rollback()
        raise

    return get_product(db, product_id)


def update_product(db: Session, product_id: str, payload: ProductInput) -> dict[str, Any]:
    get_product(db, product_id)

    try:
        barcode = resolve_barcode(db, payload.barcode, product_id=product_id)
        db.execute(
            typed_text(
                """
                UPDATE products
                SET name = :name,
                    price = :price,
                    stock = :stock,
                    barcode = :barcode,
                    updated_at = :updated_at
                WHERE id = :id
                """,
                timestamps=("updated_at",),
                money=("price",),
            ),
            {
                "id": product_id,
                "name": payload.name,
                "price": round2(payload.price),
                "stock": payload.stock,
                "barcode": barcode,
                "updated_at": utcnow(),
            },
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise BarcodeTaken(details=str(exc.orig)) from exc
    except Exception:
        db.rollback()
        raise

    return get_product(db, product_id)


def delete_product(db: Session, product_id: str) -> None:
    get_product(db, product_id)

    used = db.execute(
        text("SELECT 1 AS found FROM sale_items WHERE product_id = :id LIMIT 1"),
        {"id": product_id},
    ).first()
    if used:
        logger.info("refused to delete product with sales", extra={"product_id": product_id})
        raise ProductInUse(details=f"product_id={product_id}")

    try:
        db.execute(text("DELETE FROM products WHERE id = :id"), {"id": product_id})
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ProductInUse(details=f"product_id={product_id}") from exc
