from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import text
from sqlalchemy.orm import Session

from kiosco.core.config import settings
from kiosco.core.money import round2
from kiosco.db.sqltypes import as_utc, typed_text, utcnow
from kiosco.services.catalog import list_low_stock

TOP_PRODUCTS_LIMIT = 10
RECENT_SALES_LIMIT = 10


def reporting_windows(now: datetime, tz: ZoneInfo) -> dict[str, tuple[datetime, datetime | None]]:
    local = now.astimezone(tz)
    today = local.date()
    day_start = datetime.combine(today, time.min, tzinfo=tz)
    day_end = datetime.combine(today + timedelta(days=1), time.min, tzinfo=tz)

    month_start = datetime.combine(today.replace(day=1), time.min, tzinfo=tz)
    if today.month == 12:
        next_month = today.replace(year=today.year + 1, month=1, day=1)
    else:
        next_month = today.replace(month=today.month + 1, day=1)
    month_end = datetime.combine(next_month, time.min, tzinfo=tz)

    return {
        "today": (as_utc(day_start), as_utc(day_end)),
        "week": (now - timedelta(days=7), None),
        "month": (as_utc(month_start), as_utc(month_end)),
    }


def sales_between(db: Session, start: datetime, end: datetime | None = None) -> tuple[Decimal, int]:
    sql = "SELECT COALESCE(SUM(total), 0) AS amount, COUNT(*) AS sales_count FROM sales WHERE created_at >= :start"
    params = {"start": start}
    timestamps = ("start",)
    if end is not None:
        sql += " AND created_at < :end"
        params["end"] = end
        timestamps = ("start", "end")

    row = db.execute(typed_text(sql, timestamps=timestamps), params).mappings().first()
    return round2(row["amount"]), int(row["sales_count"])


def top_products(db: Session, limit: int = TOP_PRODUCTS_LIMIT) -> list[dict[str, Any]]:
    rows = db.execute(
        text(
            """
            SELECT
              si.product_id AS product_id,
              p.name AS name,
              SUM(si.qty) AS qty_sold,
              SUM(si.line_total) AS total_sold
            FROM sale_items si
            JOIN products p ON p.id = si.product_id
            GROUP BY si.product_id, p.name
            ORDER BY qty_sold DESC, total_sold DESC, p.name ASC
            LIMIT :limit
            """
        ),
        {"limit": limit},
    ).mappings().all()

    return [
        {
            "product_id": row["product_id"],
            "name": row["name"],
            "qty_sold": int(row["qty_sold"]),
            "total_sold": round2(row["total_sold"]),
        }
        for row in rows
    ]


def recent_sales(db: Session, limit: int = RECENT_SALES_LIMIT) -> list[dict[str, Any]]:
    rows = db.execute(
        typed_text(
            """
            SELECT
              s.id AS id,
              s.created_at AS created_at,
              s.total AS total,
              COUNT(si.id) AS items_count,
              s.payment_method AS payment_method
            FROM sales s
            LEFT JOIN sale_items si ON si.sale_id = s.id
            GROUP BY s.id, s.created_at, s.total, s.payment_method
            ORDER BY s.created_at DESC
            LIMIT :limit
            """,
            columns=("created_at",),
        ),
        {"limit": limit},
    ).mappings().all()
    return [dict(row) for row in rows]


def build_dashboard(db: Session, now: datetime | None = None) -> dict[str, Any]:
    now = as_utc(now) if now else utcnow()
    windows = reporting_windows(now, ZoneInfo(settings.reporting_timezone))

    sold_today, count_today = sales_between(db, *windows["today"])
    sold_week, _ = sales_between(db, *windows["week"])
    sold_month, _ = sales_between(db, *windows["month"])
    ticket_average = round2(sold_today / count_today) if count_today else Decimal("0.00")

    return {
        "kpis": {
            "sold_today": sold_today,
            "sold_week": sold_week,
            "sold_month": sold_month,
            "sales_count_today": count_today,
            "ticket_average_today": ticket_average,
        },
        "top_products": top_products(db),
        "recent_sales": recent_sales(db),
        "low_stock_products": list_low_stock(db),
    }
