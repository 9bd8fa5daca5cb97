"""
Registration, login and bearer-token handling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext

from shotify.db import DbClient
from shotify.errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    UnauthenticatedError,
)
from shotify.models import UserRecord, is_valid_id

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class TokenIssuer:
    """Issues and validates HS256 access tokens carrying the user id."""

    def __init__(self, secret: str, algorithm: str = "HS256", expiration_hours: int = 72):
        if not secret:
            raise ValueError("JWT secret must be configured")
        self.secret = secret
        self.algorithm = algorithm
        self.expiration = timedelta(hours=expiration_hours)

    def create_token(self, user_id: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "user_id": user_id,
            "iat": now,
            "exp": now + self.expiration,
            "type": "access",
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_token(self, token: str) -> str:
        """Return the user id from a valid token or raise ``UnauthenticatedError``."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise UnauthenticatedError(
                "token has expired", message="Invalid or expired token"
            ) from exc
        except jwt.InvalidTokenError as exc:
            raise UnauthenticatedError(
                "token is invalid", message="Invalid or expired token"
            ) from exc

        user_id = payload.get("user_id")
        if payload.get("type") != "access" or not is_valid_id(user_id):
            raise UnauthenticatedError(
                "token is invalid", message="Invalid or expired token"
            )
        return user_id


@dataclass
class AuthResult:
    token: str
    user: UserRecord

    def as_dict(self) -> dict:
        return {"token": self.token, "user": self.user.as_dict()}


class AuthService:
    def __init__(self, db: DbClient, tokens: TokenIssuer):
        self.db = db
        self.tokens = tokens

    def register(self, email: str, password: str, name: str) -> AuthResult:
        email = normalize_email(email)
        if not email or not password:
            raise InvalidArgumentError("email and password are required")
        if self.db.get_user_by_email(email):
            raise ConflictError("email already registered", message="Registration failed")

        user = self.db.create_user(email, hash_password(password), (name or "").strip())
        logger.info("Registered user %s", user.id)
        return AuthResult(token=self.tokens.create_token(user.id), user=user)

    def login(self, email: str, password: str) -> AuthResult:
        user = self.db.get_user_by_email(normalize_email(email))
        if user is None or not verify_password(password, user.password_hash):
            raise UnauthenticatedError("invalid email or password", message="Login failed")
        return AuthResult(token=self.tokens.create_token(user.id), user=user)

    def get_user(self, user_id: str) -> UserRecord:
        if not is_valid_id(user_id):
            raise InvalidArgumentError("invalid user ID")
        user = self.db.get_user(user_id)
        if user is None:
            raise NotFoundError("user not found", message="User not found")
        return user
