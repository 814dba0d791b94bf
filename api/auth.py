# api/auth.py
"""
Passwordless sign in and identity lookup.
"""
import os
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from supabase import AsyncClient

from api.dependencies import CurrentUser, get_current_user, get_supabase_anon_client
from api.rate_limiter import limiter, AUTH_RATE_LIMIT

logger = logging.getLogger("wellness-api.auth")

router = APIRouter(prefix="/auth", tags=["Auth"])


class MagicLinkRequest(BaseModel):
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@router.post("/magic-link")
@limiter.limit(AUTH_RATE_LIMIT)
async def send_magic_link(
    request: Request,
    body: MagicLinkRequest,
    anon: AsyncClient = Depends(get_supabase_anon_client),
):
    """Email a sign-in link; unknown addresses get an account created."""
    options = {"should_create_user": True}
    redirect_to = os.getenv("AUTH_REDIRECT_URL")
    if redirect_to:
        options["email_redirect_to"] = redirect_to

    try:
        await anon.auth.sign_in_with_otp({"email": body.email, "options": options})
    except Exception as e:
        logger.warning(f"Magic link request failed: {str(e)[:200]}")
        raise HTTPException(status_code=400, detail=str(getattr(e, "message", None) or e))

    return {"status": "sent", "message": "Magic link sent. Check your email."}


@router.get("/me")
async def whoami(user: Optional[CurrentUser] = Depends(get_current_user)):
    if user is None:
        return {"authenticated": False, "user_id": None, "email": None}
    return {"authenticated": True, "user_id": user.id, "email": user.email}
