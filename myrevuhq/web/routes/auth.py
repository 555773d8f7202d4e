"""Session helpers: the browser signs in with Supabase, we keep the token in cookies."""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from myrevuhq.application.errors import AuthError, ValidationError
from myrevuhq.infrastructure.auth import AuthProviderError, SupabaseAuthClient
from myrevuhq.infrastructure.config import Settings
from myrevuhq.infrastructure.persistence import Database

from ..deps import get_app_settings, get_auth_client, get_db
from ..schemas import SyncSessionRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

SESSION_MAX_AGE = 30 * 24 * 60 * 60
SESSION_COOKIES = ("access_token", "refresh_token")


@router.get("/check-email")
def check_email(email: str = Query(default=""), db: Database = Depends(get_db)):
    if not email:
        raise ValidationError("Email is required")
    user = db.get_user_by_email(email)
    return {"exists": user is not None, "createdAt": user.created_at if user else None}


@router.post("/sync-session")
def sync_session(
    body: SyncSessionRequest,
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
    settings: Settings = Depends(get_app_settings),
):
    if not body.access_token:
        raise ValidationError("Missing access token")

    try:
        user = auth_client.get_user(body.access_token)
    except AuthProviderError as e:
        raise AuthError("Invalid token") from e
    if not user:
        raise AuthError("Invalid token")

    response = JSONResponse({"success": True, "user": {"id": user.user_id, "email": user.email}})
    tokens = {"access_token": body.access_token, "refresh_token": body.refresh_token}
    for name, value in tokens.items():
        if not value:
            continue
        response.set_cookie(
            name,
            value,
            max_age=SESSION_MAX_AGE,
            path="/",
            httponly=True,
            secure=settings.app.is_production,
            samesite="lax",
        )
    return response


@router.post("/logout")
def logout():
    response = JSONResponse({"success": True})
    for name in SESSION_COOKIES:
        response.delete_cookie(name, path="/")
    return response
