import bcrypt
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Generic, Optional, Type, TypeVar
from jose import jwt, JWTError
from pydantic import BaseModel, ValidationError
from warranty.core.config import settings


def get_password_hash(password: str) -> str:
    """Hash password using bcrypt with SHA256 pre-hashing to avoid bcrypt 72-byte limit"""
    sha256 = hashlib.sha256(password.encode("utf-8")).digest()
    hashed = bcrypt.hashpw(sha256, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, hashed_password: Optional[str]) -> bool:
    """Verify password against hash"""
    if not hashed_password:
        return False
    sha256 = hashlib.sha256(password.encode("utf-8")).digest()
    return bcrypt.checkpw(sha256, hashed_password.encode("utf-8"))


def generate_tracking_token() -> str:
    """Random URL-safe token for the customer's tracking link"""
    return secrets.token_urlsafe(32)


PayloadT = TypeVar("PayloadT", bound=BaseModel)


class SessionCodec(Generic[PayloadT]):
    """
    Signs and verifies a session payload stored in an HTTP-only cookie.

    The cookie value is a JWT carrying the payload fields plus ``exp``.
    Admin and customer sessions are two instances of this codec with
    different payload models, cookie names and lifetimes.
    """

    def __init__(self, payload_model: Type[PayloadT], cookie_name: str, max_age_seconds: int):
        self.payload_model = payload_model
        self.cookie_name = cookie_name
        self.max_age_seconds = max_age_seconds

    def encode(self, payload: PayloadT) -> str:
        expire = datetime.now(timezone.utc) + timedelta(seconds=self.max_age_seconds)
        to_encode = payload.model_dump(mode="json")
        to_encode["exp"] = expire
        to_encode["kind"] = self.cookie_name
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    def decode(self, value: Optional[str]) -> Optional[PayloadT]:
        """Return the payload, or None for a missing, forged or expired cookie"""
        if not value:
            return None
        try:
            data = jwt.decode(value, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            return None
        if data.pop("kind", None) != self.cookie_name:
            return None
        data.pop("exp", None)
        try:
            return self.payload_model(**data)
        except ValidationError:
            return None

    def set_cookie(self, response, payload: PayloadT) -> None:
        response.set_cookie(
            key=self.cookie_name,
            value=self.encode(payload),
            max_age=self.max_age_seconds,
            httponly=True,
            secure=settings.cookie_secure,
            samesite="lax",
            path="/",
        )

    def clear_cookie(self, response) -> None:
        response.delete_cookie(key=self.cookie_name, path="/")
