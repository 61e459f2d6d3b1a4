# User value: keeps auth, history and upload payloads stable for the web client.
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class AuthUser(BaseModel):
    uid: str
    email: str
    role: str
    id: int
    username: str


class AuthUserResponse(BaseModel):
    success: bool = True
    user: AuthUser


class UserProfile(AuthUser):
    createdAt: Optional[datetime] = None
    lastLogin: Optional[datetime] = None


class UserProfileResponse(BaseModel):
    success: bool = True
    user: UserProfile


class AdminUserView(BaseModel):
    uid: str
    email: str
    displayName: str
    role: str
    createdAt: Optional[datetime] = None
    lastSignIn: Optional[datetime] = None
    disabled: bool = False


class AdminUserResponse(BaseModel):
    success: bool = True
    user: AdminUserView


class AdminUserListResponse(BaseModel):
    success: bool = True
    users: List[AdminUserView]
    total: int


class UserStats(BaseModel):
    totalUsers: int
    activeUsers: int
    disabledUsers: int
    adminUsers: int


class UserStatsResponse(BaseModel):
    success: bool = True
    stats: UserStats


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class OcrHistoryItem(BaseModel):
    id: int
    file_name: str
    document_type: str
    status: str
    processed_text: str
    processing_time_ms: int
    image_mime_type: Optional[str] = None
    updated_at: datetime


class OcrRecordResponse(BaseModel):
    # Returned for failed OCR too; the record status carries the outcome.
    msg: str
    id: int
    user_id: int
    firebase_uid: str
    file_name: str
    original_file_path: str
    image_mime_type: Optional[str] = None
    image_size: Optional[int] = None
    processed_text: str
    status: str
    error_message: Optional[str] = None
    processing_time_ms: int
    document_type: str
    created_at: datetime
    updated_at: datetime
