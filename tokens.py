"""
Access/refresh token issuance and rotation.

Access tokens are short-lived and never stored. Refresh tokens live longer and
the last one issued per user is mirrored in the cache, so a presented refresh
token is only honoured if it is still the current one.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from fastapi import HTTPException, Response, status
from jose import ExpiredSignatureError, JWTError, jwt

from cache import refresh_token_key
from config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ACCESS_TOKEN_SECRET,
    ALGORITHM,
    REFRESH_TOKEN_EXPIRE_DAYS,
    REFRESH_TOKEN_SECRET,
    is_production,
)

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

ACCESS_TOKEN_TTL = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
REFRESH_TOKEN_TTL = timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)


def _create_token(user_id: str, secret: str, expires_delta: timedelta) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    return jwt.encode({"sub": user_id, "exp": expire}, secret, algorithm=ALGORITHM)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    return _create_token(user_id, ACCESS_TOKEN_SECRET, expires_delta or ACCESS_TOKEN_TTL)


def create_refresh_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    return _create_token(user_id, REFRESH_TOKEN_SECRET, expires_delta or REFRESH_TOKEN_TTL)


def issue_token_pair(user_id: str) -> Tuple[str, str]:
    return create_access_token(user_id), create_refresh_token(user_id)


def persist_refresh(cache, user_id: str, refresh_token: str, ttl: timedelta = REFRESH_TOKEN_TTL) -> None:
    cache.set(refresh_token_key(user_id), refresh_token, ex=int(ttl.total_seconds()))


def revoke(cache, user_id: str) -> None:
    cache.delete(refresh_token_key(user_id))


def decode_access(token: str) -> str:
    """Return the user id carried by an access token.

    Raises jose's ExpiredSignatureError or JWTError so callers can tell an
    expired token from a forged one when wording their response.
    """
    payload = jwt.decode(token, ACCESS_TOKEN_SECRET, algorithms=[ALGORITHM])
    user_id = payload.get("sub")
    if not user_id:
        raise JWTError("Token has no subject")
    return user_id


def user_id_from_refresh(refresh_token: str) -> str:
    try:
        payload = jwt.decode(refresh_token, REFRESH_TOKEN_SECRET, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token expired")
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    return user_id


def rotate_access(cache, refresh_token: str) -> str:
    """Mint a new access token for a refresh token that is still current.

    The refresh token and its cache entry are left untouched.
    """
    user_id = user_id_from_refresh(refresh_token)
    stored = cache.get(refresh_token_key(user_id))
    if stored is None or stored != refresh_token:
        logger.warning("Rejected superseded or revoked refresh token for user %s", user_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    return create_access_token(user_id)


def set_access_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        access_token,
        max_age=int(ACCESS_TOKEN_TTL.total_seconds()),
        httponly=True,
        secure=is_production(),
        samesite="strict",
    )


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    set_access_cookie(response, access_token)
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        max_age=int(REFRESH_TOKEN_TTL.total_seconds()),
        httponly=True,
        secure=is_production(),
        samesite="strict",
    )


def clear_auth_cookies(response: Response) -> None:
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE)
