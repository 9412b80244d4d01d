import logging
import uuid
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kiosco.core.errors import (
    AdminAlreadyExists,
    AppError,
    InvalidCredentials,
    InvalidUserId,
    SelfDeleteBlocked,
    UserHasSales,
    UsernameTaken,
    UserNotFound,
)
from kiosco.core.security import (
    create_access_token,
    get_password_hash,
    internal_email,
    normalize_username,
    verify_password,
)
from kiosco.db.sqltypes import typed_text, utcnow
from kiosco.schemas.auth import Role

logger = logging.getLogger(__name__)

USER_COLUMNS = "id, username, full_name, role, is_active, created_at, last_login_at"


def _with_email(row) -> dict[str, Any]:
    user = dict(row)
    user["email"] = internal_email(user["username"])
    user["is_active"] = bool(user["is_active"])
    return user


def _username_in_use(db: Session, username: str, exclude_id: str | None = None) -> bool:
    sql = "SELECT id FROM profiles WHERE username = :username"
    params = {"username": username}
    if exclude_id:
        sql += " AND id <> :exclude_id"
        params["exclude_id"] = exclude_id
    return db.execute(text(sql + " LIMIT 1"), params).first() is not None


def authenticate(db: Session, username: str, password: str) -> dict[str, Any]:
    user = db.execute(
        text(
            """
            SELECT id, username, password_hash, full_name, role, is_active
            FROM profiles
            WHERE username = :username
            LIMIT 1
            """
        ),
        {"username": normalize_username(username)},
    ).mappings().first()

    if not user or not user["is_active"]:
        raise InvalidCredentials()

    if not verify_password(password, user["password_hash"]):
        raise InvalidCredentials()

    db.execute(
        typed_text("UPDATE profiles SET last_login_at = :now WHERE id = :id", timestamps=("now",)),
        {"id": user["id"], "now": utcnow()},
    )
    db.commit()

    return {
        "access_token": create_access_token(subject=user["id"], role=user["role"]),
        "user_id": user["id"],
        "username": user["username"],
        "full_name": user["full_name"],
        "role": user["role"],
    }


def get_user(db: Session, user_id: str) -> dict[str, Any]:
    row = db.execute(
        typed_text(
            f"SELECT {USER_COLUMNS} FROM profiles WHERE id = :id",
            columns=("created_at", "last_login_at"),
        ),
        {"id": user_id},
    ).mappings().first()
    if not row:
        raise UserNotFound(details=f"user_id={user_id}")
    return _with_email(row)


def list_users(db: Session) -> list[dict[str, Any]]:
    rows = db.execute(
        typed_text(
            f"SELECT {USER_COLUMNS} FROM profiles ORDER BY created_at ASC, username ASC",
            columns=("created_at", "last_login_at"),
        )
    ).mappings().all()
    return [_with_email(row) for row in rows]


def create_user(db: Session, username: str, password: str, full_name: str, role: Role) -> dict[str, Any]:
    username = normalize_username(username)
    if _username_in_use(db, username):
        raise UsernameTaken(details=f"username={username}")

    user_id = str(uuid.uuid4())
    try:
        db.execute(
            typed_text(
                """
                INSERT INTO profiles (id, username, full_name, role, password_hash, is_active, created_at)
                VALUES (:id, :username, :full_name, :role, :password_hash, :is_active, :created_at)
                """,
                timestamps=("created_at",),
            ),
            {
                "id": user_id,
                "username": username,
                "full_name": full_name.strip(),
                "role": role.value,
                "password_hash": get_password_hash(password),
                "is_active": True,
                "created_at": utcnow(),
            },
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise UsernameTaken(details=f"username={username}") from exc

    logger.info("user created", extra={"user_id": user_id, "role": role.value})
    return get_user(db, user_id)


def bootstrap_admin(db: Session, username: str, password: str, full_name: str) -> dict[str, Any]:
    existing = db.execute(text("SELECT id FROM profiles WHERE role = 'admin' LIMIT 1")).first()
    if existing:
        raise AdminAlreadyExists()
    return create_user(db, username, password, full_name or "Admin", Role.ADMIN)


def update_user(db: Session, user_id: str, username: str, full_name: str, role: Role) -> None:
    get_user(db, user_id)
    username = normalize_username(username)
    if _username_in_use(db, username, exclude_id=user_id):
        raise UsernameTaken(details=f"username={username}")

    try:
        db.execute(
            text(
                """
                UPDATE profiles
                SET username = :username,
                    full_name = :full_name,
                    role = :role
                WHERE id = :id
                """
            ),
            {"id": user_id, "username": username, "full_name": full_name.strip(), "role": role.value},
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise UsernameTaken(details=f"username={username}") from exc


def delete_user(db: Session, user_id: str, acting_user_id: str) -> None:
    try:
        try:
            user_id = str(uuid.UUID(user_id))
        except ValueError:
            raise InvalidUserId(step="validate_id") from None
        if user_id == acting_user_id:
            raise SelfDeleteBlocked(step="validate_id")

        sales_count = db.execute(
            text("SELECT COUNT(*) FROM sales WHERE created_by = :id"),
            {"id": user_id},
        ).scalar_one()
        if sales_count > 0:
            raise UserHasSales(step="check_sales", details=f"sales={sales_count}")

        deleted = db.execute(text("DELETE FROM profiles WHERE id = :id"), {"id": user_id})
        if deleted.rowcount == 0:
            raise UserNotFound(step="delete_user", details=f"user_id={user_id}")
        db.commit()
    except AppError as exc:
        db.rollback()
        logger.warning(
            "admin delete user failed",
            extra={"user_id": user_id, "code": exc.code, "step": exc.step, "details": exc.details},
        )
        raise

    logger.info("user deleted", extra={"user_id": user_id, "by": acting_user_id})
