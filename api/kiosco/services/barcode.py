import random
import time
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.orm import Session

from kiosco.core.config import settings


@dataclass(frozen=True)
class BarcodeResult:
    barcode: str | None
    attempts: int

    @property
    def ok(self) -> bool:
        return self.barcode is not None


def generate_candidate(prefix: str | None = None) -> str:
    """Prefix + last 7 digits of the millisecond clock + 4 random digits."""
    prefix = settings.barcode_prefix if prefix is None else prefix
    stamp = str(int(time.time() * 1000))[-7:]
    return f"{prefix}{stamp}{random.randint(0, 9999):04d}"


def barcode_exists(db: Session, barcode: str, exclude_id: str | None = None) -> bool:
    sql = "SELECT id FROM products WHERE barcode = :barcode"
    params = {"barcode": barcode}
    if exclude_id:
        sql += " AND id <> :exclude_id"
        params["exclude_id"] = exclude_id

    row = db.execute(text(sql + " LIMIT 1"), params).first()
    return row is not None


def generate_unique_barcode(
    db: Session,
    max_attempts: int | None = None,
    candidates: Callable[[], str] = generate_candidate,
) -> BarcodeResult:
    attempts = settings.barcode_max_attempts if max_attempts is None else max_attempts
    for attempt in range(1, attempts + 1):
        barcode = candidates()
        if not barcode_exists(db, barcode):
            return BarcodeResult(barcode=barcode, attempts=attempt)
    return BarcodeResult(barcode=None, attempts=attempts)
