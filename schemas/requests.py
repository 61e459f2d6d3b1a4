from pydantic import BaseModel
from typing import Optional


class VerifyTokenRequest(BaseModel):
    # Optional so a missing token is answered with 400 rather than 422.
    token: Optional[str] = None


class RoleUpdateRequest(BaseModel):
    role: Optional[str] = None


class SetRoleRequest(BaseModel):
    uid: str
    role: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    disabled: bool
