"""
Admin session handling

Admins log in with username/password and receive a signed HS256 token in the
``admin_token`` cookie. The token carries {id, username, role} and expires
after 24 hours.
"""
import base64
import hashlib
import hmac
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Cookie, Depends, Response

import config
from database import create_document
from errors import AuthenticationFailure, ValidationFailure

logger = logging.getLogger(__name__)


# Simple JWT (HS256) without external deps
def b64url_encode(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).rstrip(b"=").decode()


def b64url_decode(s: str) -> bytes:
    pad = '=' * (-len(s) % 4)
    return base64.urlsafe_b64decode(s + pad)


def sign(signing_input: bytes, secret: str) -> str:
    return b64url_encode(hmac.new(secret.encode(), signing_input, hashlib.sha256).digest())


def jwt_encode(payload: dict, secret: str) -> str:
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = b64url_encode(json.dumps(header, separators=(',', ':')).encode())
    payload_b64 = b64url_encode(json.dumps(payload, default=str, separators=(',', ':')).encode())
    signing_input = f"{header_b64}.{payload_b64}".encode()
    return f"{header_b64}.{payload_b64}.{sign(signing_input, secret)}"


def jwt_decode(token: str, secret: str) -> dict:
    """Verify signature and expiry; raises ValueError on any failure."""
    try:
        header_b64, payload_b64, sig_b64 = token.split('.')
        header = json.loads(b64url_decode(header_b64))
        if header.get("alg") != "HS256":
            raise ValueError("Unsupported algorithm")
        signing_input = f"{header_b64}.{payload_b64}".encode()
        if not hmac.compare_digest(sign(signing_input, secret), sig_b64):
            raise ValueError("Invalid signature")
        payload = json.loads(b64url_decode(payload_b64))
        exp = datetime.fromtimestamp(payload['exp'], tz=timezone.utc)
    except (ValueError, TypeError, KeyError, OverflowError) as e:
        raise ValueError(str(e))
    if datetime.now(timezone.utc) >= exp:
        raise ValueError("Token expired")
    return payload


def hash_password(password: str) -> str:
    return hashlib.sha256((password + config.PWD_SALT).encode()).hexdigest()


def verify_password(password: str, hashed: str) -> bool:
    return hmac.compare_digest(hash_password(password), hashed)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    issued = datetime.now(timezone.utc)
    expire = issued + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"iat": int(issued.timestamp()), "exp": int(expire.timestamp())})
    return jwt_encode(to_encode, config.JWT_SECRET)


def admin_public(admin: dict) -> dict:
    return {"id": str(admin["_id"]), "username": admin["username"], "role": admin.get("role", "admin")}


def login(db, username: Optional[str], password: Optional[str]):
    """Check credentials and return (admin, token)."""
    if not username or not password:
        raise ValidationFailure("Username and password are required")
    admin = db["admin"].find_one({"username": username})
    # Same message for unknown user and wrong password
    if not admin or not verify_password(password, admin.get("password_hash", "")):
        logger.info("Failed admin login for %r", username)
        raise AuthenticationFailure("Invalid credentials")
    user = admin_public(admin)
    token = create_access_token(user)
    logger.info("Admin %s logged in", user["username"])
    return user, token


def verify_token(token: Optional[str]) -> dict:
    if not token:
        raise AuthenticationFailure("No token found")
    try:
        payload = jwt_decode(token, config.JWT_SECRET)
    except ValueError as e:
        logger.warning("Token verification failed: %s", e)
        raise AuthenticationFailure("Invalid token")
    return {"id": payload.get("id"), "username": payload.get("username"), "role": payload.get("role")}


def set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key=config.ADMIN_COOKIE,
        value=token,
        max_age=config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
        httponly=True,
        secure=config.IS_PRODUCTION,
        samesite="strict",
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(
        key=config.ADMIN_COOKIE,
        path="/",
        httponly=True,
        secure=config.IS_PRODUCTION,
        samesite="strict",
    )


# Dependencies
def get_current_admin(admin_token: Optional[str] = Cookie(default=None)) -> dict:
    return verify_token(admin_token)


def require_admin(admin: dict = Depends(get_current_admin)) -> dict:
    if admin.get("role") != "admin":
        raise AuthenticationFailure("Unauthorized")
    return admin


def create_admin(db, username: str, password: str, name: Optional[str] = None,
                 email: Optional[str] = None) -> dict:
    if not username or not password:
        raise ValidationFailure("Username and password are required")
    if db["admin"].find_one({"username": username}):
        raise ValidationFailure("Username already exists")
    admin_id = create_document(db, "admin", {
        "username": username,
        "password_hash": hash_password(password),
        "name": name,
        "email": email,
        "role": "admin",
    })
    logger.info("Created admin %s", username)
    return {"id": admin_id, "username": username, "role": "admin"}
