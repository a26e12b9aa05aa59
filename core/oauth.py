"""
ROBOSTORE Google OAuth

Authorization-code handoff with Google. On success the user is found,
linked by email, or created, and receives the same auth cookie as a
password login.
"""

import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import aiohttp
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import RedirectResponse

from core.auth import USERS_COLLECTION, create_access_token, set_auth_cookie
from core.config import settings
from core.database import get_database
from core.users import AuthProvider, create_user, find_user_by_email, find_user_by_google_id
from shared.utils import get_now_iso

logger = logging.getLogger(__name__)

router = APIRouter()

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

STATE_COOKIE = "oauth_state"
STATE_MAX_AGE_SECONDS = 600
REQUEST_TIMEOUT_SECONDS = 10


def _require_oauth_config():
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        raise HTTPException(status_code=503, detail="Google sign-in is not configured")


def build_authorization_url(state: str) -> str:
    """Google consent screen URL for this client."""
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": settings.GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
        "prompt": "select_account",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def exchange_code_for_profile(code: str) -> Dict[str, Any]:
    """
    Trade an authorization code for the Google user profile.

    Raises:
        HTTPException(502) when Google rejects the code or is unreachable.
    """
    token_form = {
        "code": code,
        "client_id": settings.GOOGLE_CLIENT_ID,
        "client_secret": settings.GOOGLE_CLIENT_SECRET,
        "redirect_uri": settings.GOOGLE_REDIRECT_URI,
        "grant_type": "authorization_code",
    }
    timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SECONDS)

    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(GOOGLE_TOKEN_URL, data=token_form) as response:
                if response.status != 200:
                    logger.warning(f"Google token exchange failed: {response.status}")
                    raise HTTPException(status_code=502, detail="Google token exchange failed")
                tokens = await response.json()

            headers = {"Authorization": f"Bearer {tokens['access_token']}"}
            async with session.get(GOOGLE_USERINFO_URL, headers=headers) as response:
                if response.status != 200:
                    logger.warning(f"Google userinfo request failed: {response.status}")
                    raise HTTPException(status_code=502, detail="Google profile request failed")
                return await response.json()

    except aiohttp.ClientError as e:
        logger.error(f"Google OAuth network error: {e}")
        raise HTTPException(status_code=502, detail="Google sign-in unavailable")


def resolve_google_user(profile: Dict[str, Any]) -> str:
    """
    Find, link or create the user for a Google profile. Returns the uid.
    """
    google_id = profile.get("sub")
    email = profile.get("email")
    if not google_id or not email:
        raise HTTPException(status_code=502, detail="Google profile is missing id or email")

    found = find_user_by_google_id(google_id)
    if found is not None:
        return found[0]

    found = find_user_by_email(email)
    if found is not None:
        uid, _ = found
        get_database().collection(USERS_COLLECTION).document(uid).update({
            "google_id": google_id,
            "profile_picture": profile.get("picture"),
            "is_email_verified": bool(profile.get("email_verified", False)),
            "updated_at": get_now_iso(),
        })
        logger.info(f"🔗 Linked Google account to existing user {uid}")
        return uid

    uid, _ = create_user(
        name=profile.get("name") or email.split("@")[0],
        email=email,
        auth_provider=AuthProvider.GOOGLE,
        google_id=google_id,
        profile_picture=profile.get("picture"),
        is_email_verified=bool(profile.get("email_verified", False)),
    )
    return uid


# ============================================
# Endpoints
# ============================================

@router.api_route("/google", methods=["GET", "POST"])
async def google_login():
    """Redirect to the Google consent screen."""
    _require_oauth_config()

    state = secrets.token_urlsafe(24)
    response = RedirectResponse(build_authorization_url(state), status_code=302)
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=STATE_MAX_AGE_SECONDS,
        **settings.cookie_options(),
    )
    return response


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
):
    """Complete the Google handoff and set the auth cookie."""
    _require_oauth_config()

    if error:
        logger.info(f"Google sign-in cancelled: {error}")
        return RedirectResponse(f"{settings.FRONTEND_URL}/login?{urlencode({'error': error})}", status_code=302)

    expected_state = request.cookies.get(STATE_COOKIE)
    if not code or not state or not expected_state or not secrets.compare_digest(state, expected_state):
        raise HTTPException(status_code=400, detail="Invalid OAuth state")

    profile = await exchange_code_for_profile(code)
    uid = resolve_google_user(profile)

    response = RedirectResponse(settings.FRONTEND_URL, status_code=302)
    set_auth_cookie(response, create_access_token(uid, profile["email"]))
    response.delete_cookie(STATE_COOKIE, **settings.cookie_options())
    return response
