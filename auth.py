import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import database
from config import settings
from database import get_db

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 200_000

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algorithm, iterations, salt, expected = stored.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def issue_token(conn, user_id: int, ttl_hours: Optional[int] = None) -> str:
    token = secrets.token_urlsafe(32)
    hours = settings.token_ttl_hours if ttl_hours is None else ttl_hours
    now = datetime.now(timezone.utc)
    # 顺手清掉过期的 token，避免表只增不减
    database.purge_expired_tokens(conn, now)
    database.save_token(conn, token, user_id, now + timedelta(hours=hours))
    return token


def resolve_token(conn, token: str) -> Optional[dict]:
    """token 有效时返回对应用户，否则返回 None（不区分过期和伪造）"""
    record = database.get_token(conn, token)
    if record is None:
        return None
    if datetime.fromisoformat(record["expires_at"]) <= datetime.now(timezone.utc):
        database.delete_token(conn, token)
        return None
    return database.get_user(conn, record["user_id"])


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise _unauthorized()
    return credentials.credentials


def get_current_user(token: str = Depends(get_current_token), conn=Depends(get_db)) -> dict:
    user = resolve_token(conn, token)
    if user is None:
        logger.debug("rejected bearer token")
        raise _unauthorized()
    return user
