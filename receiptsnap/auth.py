"""
Bearer credential resolution.

The identity provider issues HS256 JWTs whose ``sub`` is the user id; we
verify them with the shared secret and mirror the user into ``users``.
"""
from __future__ import annotations

import logging
from typing import Optional

import jwt
from fastapi import Depends, Header
from pydantic import BaseModel
from sqlalchemy.orm import Session

from receiptsnap.config import settings
from receiptsnap.database import get_db
from receiptsnap.errors import Unauthorized
from receiptsnap.models import UserModel

logger = logging.getLogger(__name__)


class AuthenticatedUser(BaseModel):
    id: str
    email: str = ""


def resolve_bearer(
    authorization: Optional[str],
    *,
    secret: str,
    algorithm: str = "HS256",
    audience: Optional[str] = None,
) -> AuthenticatedUser:
    if not authorization:
        raise Unauthorized("Missing authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Invalid authorization header")

    try:
        claims = jwt.decode(
            token.strip(),
            secret,
            algorithms=[algorithm],
            audience=audience,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token has expired")
    except jwt.PyJWTError as exc:
        raise Unauthorized(f"Invalid token: {exc}")

    return AuthenticatedUser(id=str(claims["sub"]), email=claims.get("email") or "")


def ensure_user(db: Session, user: AuthenticatedUser) -> UserModel:
    row = db.query(UserModel).filter(UserModel.id == user.id).first()
    if row is None:
        row = UserModel(id=user.id, email=user.email)
        db.add(row)
        db.commit()
        logger.info("Registered user %s", user.id)
    return row


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> AuthenticatedUser:
    user = resolve_bearer(
        authorization,
        secret=settings.AUTH_JWT_SECRET,
        algorithm=settings.AUTH_JWT_ALGORITHM,
        audience=settings.AUTH_JWT_AUDIENCE or None,
    )
    ensure_user(db, user)
    return user
