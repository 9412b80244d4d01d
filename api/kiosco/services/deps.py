import hmac
from enum import Enum
from typing import Any

from fastapi import Depends, Header
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import text
from sqlalchemy.orm import Session

from kiosco.core.config import settings
from kiosco.core.errors import Forbidden, InvalidSeedToken, Unauthenticated
from kiosco.core.security import decode_access_token
from kiosco.db.session import get_db
from kiosco.schemas.auth import Role

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

ALLOWED_ROLES = {Role.ADMIN.value, Role.SELLER.value}


class AccessDecision(str, Enum):
    OK = "ok"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


def load_profile(db: Session, profile_id: str) -> dict[str, Any] | None:
    row = db.execute(
        text(
            """
            SELECT id, username, full_name, role, is_active
            FROM profiles
            WHERE id = :profile_id
            """
        ),
        {"profile_id": profile_id},
    ).mappings().first()

    return dict(row) if row else None


def get_current_profile(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> dict[str, Any] | None:
    """Resolve the bearer token to an active profile, or ``None``."""
    if not token:
        return None

    try:
        payload = decode_access_token(token)
    except ValueError:
        return None

    profile_id = payload.get("sub")
    if not profile_id:
        return None

    profile = load_profile(db, profile_id)
    if not profile or not profile["is_active"]:
        return None
    return profile


def check_role(profile: dict[str, Any] | None, required: Role | None = None) -> AccessDecision:
    if profile is None:
        return AccessDecision.UNAUTHENTICATED
    if profile["role"] not in ALLOWED_ROLES:
        return AccessDecision.FORBIDDEN
    if required is not None and profile["role"] != required.value:
        return AccessDecision.FORBIDDEN
    return AccessDecision.OK


def require_role(required: Role | None = None):
    """Dependency factory guarding a route; ``None`` admits any known role."""

    def dependency(profile: dict[str, Any] | None = Depends(get_current_profile)) -> dict[str, Any]:
        decision = check_role(profile, required)
        if decision is AccessDecision.UNAUTHENTICATED:
            raise Unauthenticated()
        if decision is AccessDecision.FORBIDDEN:
            raise Forbidden()
        return profile

    return dependency


def require_seed_token(x_seed_token: str | None = Header(default=None)) -> None:
    expected = settings.seed_token
    if not expected or not x_seed_token or not hmac.compare_digest(x_seed_token, expected):
        raise InvalidSeedToken()
