from __future__ import annotations
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header, HTTPException
from jose import JWTError, jwt
from loguru import logger
from passlib.context import CryptContext

from db import UserRepository
from settings_schema import SettingsSchema

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("Password cannot be empty")
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def new_activation_token() -> str:
    return secrets.token_hex(16)


class Authenticator:
    """Issues tokens and resolves the ``x-auth-token`` header to a user."""

    def __init__(self, users: UserRepository, settings: SettingsSchema) -> None:
        self.users = users
        self.settings = settings

    def create_token(self, user_id: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "iat": now,
            "exp": now + timedelta(minutes=self.settings.token_expire_minutes),
        }
        return jwt.encode(payload, self.settings.secret_key, algorithm=ALGORITHM)

    def decode_token(self, token: str) -> str:
        """Return the user id carried by ``token``.

        Raises:
            ValueError: If the token is malformed, expired or unsigned by us.
        """
        try:
            payload = jwt.decode(token, self.settings.secret_key, algorithms=[ALGORITHM])
        except JWTError as e:
            raise ValueError("Invalid or expired token") from e
        user_id = payload.get("sub")
        if not user_id:
            raise ValueError("Token missing user ID")
        return str(user_id)

    async def current_user(self, x_auth_token: Optional[str] = Header(None)) -> dict:
        if not x_auth_token:
            logger.warning("Auth failed: missing x-auth-token header")
            raise HTTPException(status_code=401, detail="Not authenticated")
        try:
            user_id = self.decode_token(x_auth_token)
        except ValueError as e:
            logger.warning(f"Auth failed: {e}")
            raise HTTPException(status_code=401, detail="Not authenticated")
        user = await self.users.fetch_detail(user_id)
        if user is None:
            logger.warning(f"Auth failed: unknown user {user_id}")
            raise HTTPException(status_code=401, detail="Not authenticated")
        return user

    async def active_user(self, x_auth_token: Optional[str] = Header(None)) -> dict:
        user = await self.current_user(x_auth_token)
        if user["inactive"]:
            raise HTTPException(status_code=403, detail="User inactive")
        return user
