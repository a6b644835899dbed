import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from jose import ExpiredSignatureError, JWTError
from passlib.context import CryptContext

import database
from database import to_object_id
from tokens import ACCESS_COOKIE, decode_access

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def public_user(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "role": user.get("role", "customer"),
    }


def load_user(user_id: str) -> Optional[dict]:
    oid = to_object_id(user_id)
    if oid is None:
        return None
    return database.db["user"].find_one({"_id": oid}, {"password_hash": 0})


async def get_current_user(request: Request):
    token = request.cookies.get(ACCESS_COOKIE)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - No access token provided",
        )
    try:
        user_id = decode_access(token)
    except ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - Access token expired",
        )
    except JWTError as e:
        logger.info("Rejected access token: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - Invalid access token",
        )

    user = load_user(user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - User not found",
        )
    return user


def require_role(user: dict, role: str) -> None:
    if user.get("role") != role:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Access denied - {role.capitalize()} only")


# Admin guard
def require_admin(user=Depends(get_current_user)):
    require_role(user, "admin")
    return user
