"""Supabase JWT validation dependency for FastAPI."""

from fastapi import Depends, Header, HTTPException
from supabase import create_client
from vhs_render.config import settings


async def verify_jwt(authorization: str = Header(None)):
    """Validate Supabase JWT from Authorization header.

    Returns the authenticated user object.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid token")

    token = authorization.replace("Bearer ", "")
    try:
        client = create_client(settings.supabase_url, settings.supabase_anon_key)
        user_response = client.auth.get_user(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid token")
    if user_response is None or user_response.user is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_response.user


async def get_current_user_id(user=Depends(verify_jwt)) -> str:
    return str(user.id)
