"""
ROBOSTORE User Service

Local account registration, cookie login/logout and the profile endpoint.
"""

import logging
from enum import Enum
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, EmailStr, Field

from core.auth import (
    USERS_COLLECTION,
    AuthenticatedUser,
    clear_auth_cookie,
    create_access_token,
    get_current_user,
    hash_password,
    set_auth_cookie,
    verify_password,
)
from core.database import get_database
from shared.utils import get_now_iso

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Enums and Models
# ============================================

class AuthProvider(str, Enum):
    LOCAL = "local"
    GOOGLE = "google"


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: str
    name: str
    email: EmailStr
    profile_picture: Optional[str] = None
    auth_provider: AuthProvider = AuthProvider.LOCAL
    is_email_verified: bool = False
    created_at: str
    updated_at: str


# ============================================
# Helper Functions
# ============================================

def can_login_with_password(user_data: dict) -> bool:
    return user_data.get("auth_provider", "local") == "local" and bool(user_data.get("password"))


def is_oauth_user(user_data: dict) -> bool:
    return user_data.get("auth_provider", "local") != "local"


def to_user_response(uid: str, user_data: dict) -> UserResponse:
    """Public view of a user document (never includes the password hash)."""
    public = {k: v for k, v in user_data.items() if k not in ("password", "google_id")}
    return UserResponse(id=uid, **public)


def find_user_by_email(email: str) -> Optional[Tuple[str, dict]]:
    """Return (uid, data) for the user with this email, if any."""
    users_ref = get_database().collection(USERS_COLLECTION)
    for doc in users_ref.where("email", "==", email).limit(1).stream():
        return doc.id, doc.to_dict()
    return None


def find_user_by_google_id(google_id: str) -> Optional[Tuple[str, dict]]:
    users_ref = get_database().collection(USERS_COLLECTION)
    for doc in users_ref.where("google_id", "==", google_id).limit(1).stream():
        return doc.id, doc.to_dict()
    return None


def create_user(
    name: str,
    email: str,
    password_hash: Optional[str] = None,
    auth_provider: AuthProvider = AuthProvider.LOCAL,
    google_id: Optional[str] = None,
    profile_picture: Optional[str] = None,
    is_email_verified: bool = False,
) -> Tuple[str, dict]:
    """
    Store a new user document.

    Raises:
        ValueError: duplicate email, or credentials missing for the provider.
    """
    if auth_provider == AuthProvider.GOOGLE and not google_id:
        raise ValueError("Google ID is required for Google authentication")
    if auth_provider == AuthProvider.LOCAL and not password_hash:
        raise ValueError("Password is required for local authentication")
    if find_user_by_email(email) is not None:
        raise ValueError(f"Email already registered: {email}")

    now = get_now_iso()
    user_data = {
        "name": name,
        "email": email,
        "password": password_hash,
        "google_id": google_id,
        "profile_picture": profile_picture,
        "auth_provider": auth_provider.value,
        "is_email_verified": is_email_verified,
        "created_at": now,
        "updated_at": now,
    }

    _, user_ref = get_database().collection(USERS_COLLECTION).add(user_data)
    logger.info(f"👤 Created {auth_provider.value} user {user_ref.id} ({email})")
    return user_ref.id, user_data


# ============================================
# Endpoints
# ============================================

@router.post("/register", response_model=UserResponse, status_code=201)
async def register(request: RegisterRequest):
    """Create a local account."""
    try:
        uid, user_data = create_user(
            name=request.name,
            email=request.email,
            password_hash=hash_password(request.password),
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return to_user_response(uid, user_data)


@router.post("/login", response_model=UserResponse)
async def login(request: LoginRequest, response: Response):
    """Verify credentials and set the auth cookie."""
    found = find_user_by_email(request.email)
    if found is None:
        raise HTTPException(status_code=404, detail="User not found")

    uid, user_data = found
    if is_oauth_user(user_data):
        raise HTTPException(status_code=422, detail="This account signs in with Google")

    if not can_login_with_password(user_data) or not verify_password(request.password, user_data.get("password")):
        logger.info(f"Rejected password for {request.email}")
        raise HTTPException(status_code=422, detail="Invalid password")

    set_auth_cookie(response, create_access_token(uid, user_data["email"]))
    return to_user_response(uid, user_data)


@router.post("/logout")
async def logout(response: Response):
    """Clear the auth cookie."""
    clear_auth_cookie(response)
    return True


@router.get("/profile", response_model=UserResponse)
async def profile(current_user: AuthenticatedUser = Depends(get_current_user)):
    """Get the current authenticated user's profile."""
    user_doc = get_database().collection(USERS_COLLECTION).document(current_user.uid).get()

    if not user_doc.exists:
        raise HTTPException(status_code=404, detail="User profile not found")

    return to_user_response(current_user.uid, user_doc.to_dict())
