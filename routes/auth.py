# routes/auth.py
import logging

from fastapi import APIRouter, Depends

from schemas.requests import VerifyTokenRequest
from schemas.responses import AuthUserResponse, UserProfileResponse
from services.auth import get_current_user, resolve_account
from services.identity import get_identity_verifier
from services.users import UserDirectory, get_user_directory
from utils import errors
from utils.stage_logging import log_stage

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("api.auth")


@router.post("/verify", response_model=AuthUserResponse)
# User value: lets the web client exchange a sign-in token for the user's local profile and role.
def verify_token(
    payload: VerifyTokenRequest,
    verifier=Depends(get_identity_verifier),
    directory: UserDirectory = Depends(get_user_directory),
):
    token = (payload.token or "").strip()
    if not token:
        raise errors.bad_request("Token is required", error_code="AUTH_MISSING_TOKEN")

    log_stage(stage="AUTH_VERIFY", event="STARTED", token_length=len(token))
    user = resolve_account(token, verifier, directory)
    log_stage(stage="AUTH_VERIFY", event="COMPLETED", uid=user["uid"], role=user["role"], account_id=user["id"])
    return {"success": True, "user": user}


@router.get("/me", response_model=AuthUserResponse)
def me(user=Depends(get_current_user)):
    return {"success": True, "user": user}


@router.get("/user", response_model=UserProfileResponse)
# User value: shows the signed-in user's profile with real account timestamps.
def profile(
    user=Depends(get_current_user),
    directory: UserDirectory = Depends(get_user_directory),
):
    account = directory.get_by_uid(user["uid"]) or {}
    return {
        "success": True,
        "user": {
            **user,
            "createdAt": account.get("created_at"),
            "lastLogin": account.get("last_login_at"),
        },
    }
