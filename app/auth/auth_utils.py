# app/auth/auth_utils.py
from jose import jwt, JWTError
from fastapi import Header, HTTPException, Depends
from typing import Optional

from app import config

ADMIN_ROLE = "admin"


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or Expired Token")


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


def get_current_user(authorization: str = Header(None)) -> dict:
    """
    Require a valid bearer token.
    Returns the token payload; payload["sub"] is the user id.
    """
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    payload = decode_token(token)
    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token: missing user_id")
    return payload


def get_optional_user(authorization: str = Header(None)) -> Optional[dict]:
    """Like get_current_user, but anonymous requests pass through as None"""
    if not _bearer_token(authorization):
        return None
    return get_current_user(authorization)


def is_admin(user: Optional[dict]) -> bool:
    return bool(user) and user.get("role") == ADMIN_ROLE


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if not is_admin(user):
        raise HTTPException(status_code=403, detail="Access denied. Admin privileges required.")
    return user


def peek_role(authorization: Optional[str]) -> Optional[str]:
    """Best-effort role lookup for middleware; never raises"""
    token = _bearer_token(authorization)
    if not token:
        return None
    try:
        payload = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        return None
    return payload.get("role")
