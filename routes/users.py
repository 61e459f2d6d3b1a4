# User value: gives admins one place to manage roles and access for every account.
# routes/users.py
import logging

from fastapi import APIRouter, Depends

from schemas.requests import RoleUpdateRequest, SetRoleRequest, StatusUpdateRequest
from schemas.responses import (
    AdminUserListResponse,
    AdminUserResponse,
    MessageResponse,
    UserStatsResponse,
)
from services.auth import get_current_user, require_admin
from services.users import ROLE_ADMIN, ROLES, UserDirectory, get_user_directory
from utils import errors
from utils.metrics import incr

router = APIRouter(prefix="/api/auth", tags=["users"])
logger = logging.getLogger("api.users")


def to_admin_view(account: dict) -> dict:
    return {
        "uid": account["firebase_uid"],
        "email": account["email"],
        "displayName": account["username"],
        "role": account.get("role") or "user",
        "createdAt": account.get("created_at"),
        "lastSignIn": account.get("last_login_at"),
        "disabled": bool(account.get("disabled")),
    }


def _apply_role(directory: UserDirectory, *, uid: str, role: str | None, actor: dict) -> dict:
    if role not in ROLES:
        raise errors.bad_request('Invalid role. Must be "user" or "admin"', error_code="INVALID_ROLE")
    if not directory.update_role(uid, role):
        raise errors.not_found("User not found")
    incr("api_admin_actions_total", action="role_update")
    logger.info("user_role_updated actor=%s target=%s role=%s", actor["uid"], uid, role)
    return {"success": True, "message": "User role updated successfully"}


@router.get("/users", response_model=AdminUserListResponse)
def list_users(
    admin=Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
):
    accounts = [to_admin_view(a) for a in directory.list_accounts()]
    return {"success": True, "users": accounts, "total": len(accounts)}


@router.get("/users/stats", response_model=UserStatsResponse)
def user_stats(
    admin=Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
):
    return {"success": True, "stats": directory.stats()}


@router.get("/users/{uid}", response_model=AdminUserResponse)
# User value: users can read their own account; admins can read anyone's.
def get_user(
    uid: str,
    user=Depends(get_current_user),
    directory: UserDirectory = Depends(get_user_directory),
):
    if user["role"] != ROLE_ADMIN and user["uid"] != uid:
        raise errors.forbidden("Access denied")

    account = directory.get_by_uid(uid)
    if not account:
        raise errors.not_found("User not found")
    return {"success": True, "user": to_admin_view(account)}


@router.put("/users/{uid}/role", response_model=MessageResponse)
def update_user_role(
    uid: str,
    payload: RoleUpdateRequest,
    admin=Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
):
    return _apply_role(directory, uid=uid, role=payload.role, actor=admin)


@router.post("/set-role", response_model=MessageResponse)
def set_role(
    payload: SetRoleRequest,
    admin=Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
):
    return _apply_role(directory, uid=payload.uid, role=payload.role, actor=admin)


@router.put("/users/{uid}/status", response_model=MessageResponse)
def toggle_user_status(
    uid: str,
    payload: StatusUpdateRequest,
    admin=Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
):
    if admin["uid"] == uid:
        raise errors.bad_request("Cannot disable your own account", error_code="SELF_TARGETED_ACTION")

    if not directory.set_disabled(uid, payload.disabled):
        raise errors.not_found("User not found")

    incr("api_admin_actions_total", action="status_update")
    logger.info("user_status_updated actor=%s target=%s disabled=%s", admin["uid"], uid, payload.disabled)
    return {
        "success": True,
        "message": f"User {'disabled' if payload.disabled else 'enabled'} successfully",
    }


@router.delete("/users/{uid}", response_model=MessageResponse)
def delete_user(
    uid: str,
    admin=Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
):
    if admin["uid"] == uid:
        raise errors.bad_request("Cannot delete your own account", error_code="SELF_TARGETED_ACTION")

    if not directory.delete_account(uid):
        raise errors.not_found("User not found")

    incr("api_admin_actions_total", action="delete")
    logger.info("user_deleted actor=%s target=%s", admin["uid"], uid)
    return {"success": True, "message": "User deleted successfully"}
