# services/auth.py
import logging

from fastapi import Depends, Header, Request

from services.identity import IdentityVerificationError, get_identity_verifier
from services.users import ROLE_ADMIN, ROLE_USER, UserDirectory, get_user_directory
from utils import errors
from utils.metrics import incr
from utils.request_context import set_request_uid
from utils.stage_logging import log_stage

logger = logging.getLogger("api.auth")


def bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise errors.unauthenticated("Access token required", error_code="AUTH_MISSING_TOKEN")

    token = authorization[len("Bearer "):].strip()
    if not token:
        raise errors.unauthenticated("Access token required", error_code="AUTH_MISSING_TOKEN")
    return token


def resolve_account(token: str, verifier, directory: UserDirectory) -> dict:
    """Verify ``token`` and return the caller context, provisioning on first sight."""
    try:
        identity = verifier.verify(token)
    except IdentityVerificationError as exc:
        incr("api_auth_rejected_total", reason="invalid_token")
        raise errors.unauthenticated() from exc

    uid = identity["uid"]
    email = identity["email"]
    account = directory.provision(uid=uid, email=email)

    if account.get("disabled"):
        incr("api_auth_rejected_total", reason="disabled")
        log_stage(stage="AUTH_GATE", event="FAILED", uid=uid, error="account disabled")
        raise errors.forbidden("User access disabled", error_code="AUTH_USER_DISABLED")

    set_request_uid(uid)
    return {
        "uid": uid,
        "email": email,
        "role": account.get("role") or ROLE_USER,
        "id": account["id"],
        "username": account["username"],
    }


def get_current_user(
    request: Request,
    authorization: str | None = Header(None),
    verifier=Depends(get_identity_verifier),
    directory: UserDirectory = Depends(get_user_directory),
) -> dict:
    """Bearer-token gate; every protected route depends on this."""
    token = bearer_token(authorization)
    user = resolve_account(token, verifier, directory)
    request.state.user = user

    directory.touch_last_login(user["id"])
    incr("api_auth_passed_total", role=user["role"])
    return user


def require_role(role: str):
    def _dependency(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role") != role:
            incr("api_auth_forbidden_total", required_role=role)
            logger.warning("role_check_failed uid=%s role=%s required=%s", user.get("uid"), user.get("role"), role)
            raise errors.forbidden("Admin access required" if role == ROLE_ADMIN else "Access denied")
        return user

    return _dependency


require_admin = require_role(ROLE_ADMIN)
