"""
Request dependencies: shared services from app.state and the signed-in user.
"""

import logging
from typing import Optional

from fastapi import Request

from myrevuhq.application.errors import AuthError
from myrevuhq.infrastructure.auth import AuthProviderError, AuthUser, SupabaseAuthClient
from myrevuhq.infrastructure.config import Settings
from myrevuhq.infrastructure.persistence import Database

logger = logging.getLogger(__name__)


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_client(request: Request) -> SupabaseAuthClient:
    return request.app.state.auth_client


def extract_token(request: Request) -> Optional[str]:
    """Bearer header first, then the access_token cookie set by sync-session."""
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get("access_token") or None


def get_current_user(request: Request) -> AuthUser:
    """
    Resolve the caller. Any failure is a 401 {"error": "Unauthorized"}.
    """
    token = extract_token(request)
    if not token:
        raise AuthError()

    try:
        user = get_auth_client(request).get_user(token)
    except AuthProviderError as e:
        logger.error(f"[Auth] Token verification unavailable: {e}")
        raise AuthError() from e

    if not user:
        raise AuthError()
    return user
