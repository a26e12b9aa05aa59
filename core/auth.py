"""
ROBOSTORE Cookie Authentication

Password hashing, JWT issuing and verification of the auth cookie
for protected endpoints.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Response
from fastapi.security import APIKeyCookie

from core.config import settings
from core.database import get_database
from shared.utils import setup_logger

# Configure detailed logging
logger = setup_logger("robostore.auth", level=logging.DEBUG)

# Cookie scheme for token extraction
cookie_scheme = APIKeyCookie(name=settings.AUTH_COOKIE_NAME, auto_error=False)

USERS_COLLECTION = "users"


class AuthenticatedUser:
    """Represents the user behind a valid auth cookie."""

    def __init__(
        self,
        uid: str,
        email: str,
        name: Optional[str] = None,
        auth_provider: str = "local",
    ):
        self.uid = uid
        self.email = email
        self.name = name
        self.auth_provider = auth_provider

    def __repr__(self):
        return f"AuthenticatedUser(uid={self.uid}, email={self.email}, provider={self.auth_provider})"


# ============================================
# Passwords
# ============================================

def hash_password(password: str) -> str:
    """Hash a plaintext password with bcrypt."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a plaintext password against a stored bcrypt hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash or over-long password
        return False


# ============================================
# Tokens
# ============================================

def create_access_token(uid: str, email: str) -> str:
    """Issue a signed JWT carrying the user id and email."""
    expires = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
    payload = {"id": uid, "email": email, "exp": expires}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Verify a JWT and return its claims.

    Raises:
        HTTPException(401) for expired or invalid tokens.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("Token expired")
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token: {e}")
        raise HTTPException(status_code=401, detail="Invalid authentication token")


def set_auth_cookie(response: Response, token: str):
    """Attach the auth cookie to a response."""
    response.set_cookie(settings.AUTH_COOKIE_NAME, token, **settings.cookie_options())


def clear_auth_cookie(response: Response):
    """Expire the auth cookie."""
    response.delete_cookie(settings.AUTH_COOKIE_NAME, **settings.cookie_options())


# ============================================
# Dependencies
# ============================================

async def get_current_user(
    token: Optional[str] = Depends(cookie_scheme)
) -> AuthenticatedUser:
    """
    Resolve the user from the auth cookie.

    Usage:
        @router.get("/protected")
        async def protected_route(user: AuthenticatedUser = Depends(get_current_user)):
            return {"message": f"Hello {user.email}"}
    """
    start_time = time.time()

    if not token:
        logger.debug("❌ No auth cookie provided")
        raise HTTPException(status_code=401, detail="Not authenticated")

    claims = decode_access_token(token)
    uid = claims.get("id")
    if not uid:
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    user_doc = get_database().collection(USERS_COLLECTION).document(uid).get()
    if not user_doc.exists:
        logger.warning(f"Token for unknown user {uid}")
        raise HTTPException(status_code=401, detail="Not authenticated")

    data = user_doc.to_dict()
    user = AuthenticatedUser(
        uid=uid,
        email=data.get("email", claims.get("email")),
        name=data.get("name"),
        auth_provider=data.get("auth_provider", "local"),
    )

    elapsed = (time.time() - start_time) * 1000
    logger.debug(f"✅ Authenticated: {user} in {elapsed:.1f}ms")
    return user
