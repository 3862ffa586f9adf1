"""
Auth and preference routes for the FastAPI application.

Provides endpoints for:
- Email/password sign-up, sign-in and sign-out
- Google OAuth (sign-in URL and redirect completion)
- The signed-in user's profile and preferences

Sign-in responses carry an access token; later calls send it as a bearer
token and get a SessionBridge for that user.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...main import MealPlanningAssistant
from ...session.bridge import DEFAULT_OAUTH_REDIRECT, SessionBridge
from ..dependencies import get_assistant, get_session, run_blocking

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth")


class SignUpRequest(BaseModel):
    """Request body for creating an account."""
    name: str
    email: str
    password: str


class SignInRequest(BaseModel):
    """Request body for email/password sign-in."""
    email: str
    password: str


class OAuthCallbackRequest(BaseModel):
    """The URL the OAuth provider redirected to."""
    callback_url: str


class PreferencesRequest(BaseModel):
    """Partial preference update; omitted fields are left unchanged."""
    household_size: Optional[int] = None
    dietary_restrictions: Optional[List[str]] = None
    instacart_connected: Optional[bool] = None


class SessionResponse(BaseModel):
    """Signed-in user plus the token to send on later requests."""
    user: Optional[dict] = None
    access_token: Optional[str] = None
    confirmation_pending: bool = False
    is_new_user: bool = False


@router.post("/sign-up", response_model=SessionResponse)
async def sign_up(
    sign_up_request: SignUpRequest,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Create an account; user is null while email confirmation is pending."""
    bridge = assistant.open_session()
    user = await run_blocking(
        bridge.sign_up, sign_up_request.name, sign_up_request.email, sign_up_request.password
    )
    if user is None:
        return SessionResponse(confirmation_pending=True)
    return SessionResponse(user=user.to_dict(), access_token=bridge.access_token, is_new_user=True)


@router.post("/sign-in", response_model=SessionResponse)
async def sign_in(
    sign_in_request: SignInRequest,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Sign in with email and password."""
    bridge = assistant.open_session()
    user = await run_blocking(bridge.sign_in, sign_in_request.email, sign_in_request.password)
    return SessionResponse(user=user.to_dict(), access_token=bridge.access_token)


@router.post("/sign-out")
async def sign_out(bridge: SessionBridge = Depends(get_session)):
    """Revoke the bearer token."""
    await run_blocking(bridge.sign_out)
    return {"success": True}


@router.get("/oauth-url")
async def oauth_url(
    provider: str = "google",
    redirect_to: str = DEFAULT_OAUTH_REDIRECT,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Where to send the browser to start an OAuth sign-in."""
    bridge = assistant.open_session()
    url = await run_blocking(bridge.oauth_sign_in_url, provider, redirect_to)
    return {"url": url}


@router.post("/oauth-callback", response_model=SessionResponse)
async def oauth_callback(
    callback_request: OAuthCallbackRequest,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Finish an OAuth sign-in; is_new_user routes the client to onboarding."""
    bridge = assistant.open_session()
    result = await run_blocking(bridge.complete_oauth_redirect, callback_request.callback_url)
    return SessionResponse(
        user=result.user.to_dict(),
        access_token=bridge.access_token,
        is_new_user=result.is_new_user,
    )


@router.get("/me")
async def current_user(bridge: SessionBridge = Depends(get_session)):
    """The signed-in user's profile and preferences."""
    return {"user": bridge.current_user().to_dict()}


@router.patch("/preferences")
async def update_preferences(
    preferences_request: PreferencesRequest,
    bridge: SessionBridge = Depends(get_session),
):
    """Update household size, dietary restrictions or the Instacart flag."""
    user = await run_blocking(
        bridge.update_preferences,
        household_size=preferences_request.household_size,
        dietary_restrictions=preferences_request.dietary_restrictions,
        instacart_connected=preferences_request.instacart_connected,
    )
    return {"user": user.to_dict()}
