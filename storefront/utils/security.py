from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Request

from storefront.infra.context import AppContext, get_context
from storefront.infra.supabase_client import first_row
from storefront.utils.errors import AuthError, ForbiddenError

COOKIE_NAME = "sb_access"


def extract_token(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME)


def decode_token(token: str, secret: str) -> Dict[str, Any]:
    """JWT HS256 signé par le service d'auth; l'identifiant est dans 'id' ou 'sub'."""
    if not secret:
        raise AuthError("Authentication is not configured")
    try:
        return jwt.decode(token, secret, algorithms=["HS256"], options={"verify_aud": False})
    except jwt.ExpiredSignatureError:
        raise AuthError("Session expired, please log in again")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token")


def get_current_user(request: Request, ctx: AppContext = Depends(get_context)) -> Dict[str, Any]:
    token = extract_token(request)
    if not token:
        raise AuthError("Not authenticated")
    claims = decode_token(token, ctx.settings.jwt_secret)
    user_id = claims.get("id") or claims.get("sub")
    if not user_id:
        raise AuthError("Invalid token")
    res = ctx.db.table("users").select("id, email, username, role").eq("id", user_id).limit(1).execute()
    user = first_row(res)
    if not user:
        raise AuthError("User not found")
    return user


def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise ForbiddenError("Admin access required")
    return user
