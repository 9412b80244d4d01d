import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.orm import Session

from kiosco.core.errors import AppError, CartProductNotFound, InsufficientStock, TotalIntegrityError
from kiosco.core.money import round2
from kiosco.db.session import supports_row_locks
from kiosco.db.sqltypes import typed_text, utcnow
from kiosco.schemas.sales import PaymentMethod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutLine:
    product_id: str
    qty: int


@dataclass(frozen=True)
class CheckoutResult:
    sale_id: str
    total: Decimal


def group_lines(lines: Iterable[CheckoutLine]) -> dict[str, int]:
    """Sum quantities per product, keyed and ordered by product id."""
    grouped: dict[str, int] = {}
    for line in lines:
        grouped[line.product_id] = grouped.get(line.product_id, 0) + line.qty
    return dict(sorted(grouped.items()))


def _lock_product(db: Session, product_id: str, for_update: bool):
    sql = "SELECT id, name, stock, price FROM products WHERE id = :id"
    if for_update:
        sql += " FOR UPDATE"
    return db.execute(text(sql), {"id": product_id}).mappings().first()


def _decrement_stock(db: Session, product_id: str, qty: int) -> bool:
    result = db.execute(
        typed_text(
            """
            UPDATE products
            SET stock = stock - :qty,
                updated_at = :updated_at
            WHERE id = :id
              AND stock >= :qty
            """,
            timestamps=("updated_at",),
        ),
        {"id": product_id, "qty": qty, "updated_at": utcnow()},
    )
    return result.rowcount == 1


def checkout(
    db: Session,
    lines: Iterable[CheckoutLine],
    payment_method: PaymentMethod,
    created_by: str,
) -> CheckoutResult:
    grouped = group_lines(lines)
    if not grouped:
        raise ValueError("Cart is empty")

    sale_id = str(uuid.uuid4())
    for_update = supports_row_locks(db)

    try:
        db.execute(
            typed_text(
                """
                INSERT INTO sales (id, created_at, total, payment_method, created_by)
                VALUES (:id, :created_at, :total, :payment_method, :created_by)
                """,
                timestamps=("created_at",),
                money=("total",),
            ),
            {
                "id": sale_id,
                "created_at": utcnow(),
                "total": Decimal("0"),
                "payment_method": payment_method.value,
                "created_by": created_by,
            },
        )

        total = Decimal("0")
        for product_id, qty in grouped.items():
            product = _lock_product(db, product_id, for_update)
            if not product:
                raise CartProductNotFound(product_id, step="lock_product")

            available = int(product["stock"])
            if qty > available:
                raise InsufficientStock(product_id, qty, available, step="check_stock")

            unit_price = round2(product["price"])
            line_total = round2(unit_price * qty)
            total = round2(total + line_total)

            if not _decrement_stock(db, product_id, qty):
                raise InsufficientStock(product_id, qty, available, step="decrement_stock")

            db.execute(
                typed_text(
                    """
                    INSERT INTO sale_items (id, sale_id, product_id, qty, unit_price, line_total)
                    VALUES (:id, :sale_id, :product_id, :qty, :unit_price, :line_total)
                    """,
                    money=("unit_price", "line_total"),
                ),
                {
                    "id": str(uuid.uuid4()),
                    "sale_id": sale_id,
                    "product_id": product_id,
                    "qty": qty,
                    "unit_price": unit_price,
                    "line_total": line_total,
                },
            )

        db.execute(
            typed_text("UPDATE sales SET total = :total WHERE id = :id", money=("total",)),
            {"id": sale_id, "total": total},
        )

        verify_sale_total(db, sale_id)
        db.commit()
    except AppError as exc:
        db.rollback()
        log = logger.error if isinstance(exc, TotalIntegrityError) else logger.info
        log("checkout rejected", extra={"code": exc.code, "step": exc.step, "sale_id": sale_id})
        raise
    except Exception:
        db.rollback()
        logger.exception("checkout failed", extra={"sale_id": sale_id})
        raise

    logger.info(
        "checkout committed",
        extra={"sale_id": sale_id, "total": str(total), "products": len(grouped), "created_by": created_by},
    )
    return CheckoutResult(sale_id=sale_id, total=total)


def verify_sale_total(db: Session, sale_id: str) -> Decimal:
    """Read back the stored total and compare it with its line items."""
    row = db.execute(
        text(
            """
            SELECT
              s.total AS total,
              COUNT(si.id) AS items_count,
              COALESCE(SUM(si.line_total), 0) AS items_total
            FROM sales s
            LEFT JOIN sale_items si ON si.sale_id = s.id
            WHERE s.id = :sale_id
            GROUP BY s.id, s.total
            """
        ),
        {"sale_id": sale_id},
    ).mappings().first()

    stored = round2(row["total"])
    items_total = round2(row["items_total"])

    if row["items_count"] > 0 and stored == 0:
        raise TotalIntegrityError(
            "Sale has line items but a zero total",
            step="verify_total",
            details=f"items={row['items_count']}",
        )
    if stored != items_total:
        raise TotalIntegrityError(
            "Sale total does not match its line items",
            step="verify_total",
            details=f"total={stored} items_total={items_total}",
        )
    return stored

