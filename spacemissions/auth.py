"""User registration, login and the bearer-token gate for mutating routes.

Passwords are hashed with bcrypt; the per-user salt is stored next to the
hash. Tokens are HS256 JWTs signed with ``JWT_KEY``.
"""
from __future__ import annotations

import logging
import time
from typing import Any

import bcrypt
import jwt
from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from . import models
from .config import JwtSettings, settings
from .db import get_session
from .errors import AuthenticationError, ConflictError, ValidationError

logger = logging.getLogger(__name__)


def hash_password(plain_password: str) -> tuple[bytes, bytes]:
    """Return ``(password_hash, password_salt)``."""
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise ValidationError("Password is empty.")
    if len(password) > 72:
        raise ValidationError("Password must be at most 72 bytes.")
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password, salt), salt


def verify_password(plain_password: str, password_hash: bytes, password_salt: bytes) -> bool:
    password = (plain_password or "").encode("utf-8")
    if not password or not password_hash or not password_salt:
        return False
    try:
        return bcrypt.checkpw(password, bytes(password_hash))
    except ValueError:
        return False


def build_access_token(user: models.User, jwt_settings: JwtSettings | None = None) -> str:
    jwt_settings = jwt_settings or settings.jwt
    issued_at = int(time.time())
    payload: dict[str, Any] = {
        "sub": str(user.id),
        "name": user.username,
        "iat": issued_at,
        "exp": issued_at + jwt_settings.expire_minutes * 60,
    }
    if jwt_settings.issuer:
        payload["iss"] = jwt_settings.issuer
    if jwt_settings.audience:
        payload["aud"] = jwt_settings.audience
    return jwt.encode(payload, jwt_settings.key, algorithm=jwt_settings.algorithm)


def decode_access_token(token: str, jwt_settings: JwtSettings | None = None) -> dict[str, Any]:
    jwt_settings = jwt_settings or settings.jwt
    raw = (token or "").strip()
    if not raw:
        raise AuthenticationError("Access token is empty.")
    try:
        return jwt.decode(
            raw,
            jwt_settings.key,
            algorithms=[jwt_settings.algorithm],
            issuer=jwt_settings.issuer,
            audience=jwt_settings.audience,
            leeway=60,
        )
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid access token.") from exc


async def get_user_by_username(session: AsyncSession, username: str) -> models.User | None:
    result = await session.execute(
        select(models.User).where(models.User.username == username.strip())
    )
    return result.scalars().first()


async def register(session: AsyncSession, *, username: str, password: str) -> models.User:
    username = username.strip()
    if await get_user_by_username(session, username) is not None:
        raise ConflictError("A user with this username already exists.")

    password_hash, password_salt = hash_password(password)
    user = models.User(username=username, password_hash=password_hash, password_salt=password_salt)
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError("A user with this username already exists.") from e
    logger.info(f"Registered user {user.id}: {username}")
    return user


async def login(session: AsyncSession, *, username: str, password: str) -> str:
    """Check credentials and issue an access token."""
    user = await get_user_by_username(session, username)
    if user is None or not verify_password(password, user.password_hash, user.password_salt):
        raise AuthenticationError("Invalid username or password.")
    return build_access_token(user)


def extract_bearer_token(authorization: str | None) -> str:
    raw = (authorization or "").strip()
    if not raw:
        raise AuthenticationError("Missing Authorization header.")

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        raise AuthenticationError("Invalid Authorization header format.")

    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        raise AuthenticationError("Authorization must be: Bearer <token>.")
    return token


async def require_user(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> models.User:
    """FastAPI dependency: the caller must present a valid bearer token."""
    payload = decode_access_token(extract_bearer_token(authorization))

    subject = str(payload.get("sub") or "").strip()
    if not subject.isdigit():
        raise AuthenticationError("Invalid access token subject.")

    user = await session.get(models.User, int(subject))
    if user is None:
        raise AuthenticationError("User not found.")
    return user
