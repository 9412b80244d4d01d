from datetime import datetime, timezone

from sqlalchemy import DateTime, Numeric, TextClause, TextualSelect, bindparam, text
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UtcDateTime(TypeDecorator):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)


TIMESTAMP = UtcDateTime()
MONEY = Numeric(12, 2, asdecimal=True)


def typed_text(
    sql: str,
    timestamps: tuple[str, ...] = (),
    money: tuple[str, ...] = (),
    columns: tuple[str, ...] = (),
) -> TextClause | TextualSelect:
    """``text()`` with typed bind params and timestamp result columns."""
    stmt = text(sql)
    params = [bindparam(name, type_=TIMESTAMP) for name in timestamps]
    params += [bindparam(name, type_=MONEY) for name in money]
    if params:
        stmt = stmt.bindparams(*params)
    if columns:
        stmt = stmt.columns(**{name: TIMESTAMP for name in columns})
    return stmt
