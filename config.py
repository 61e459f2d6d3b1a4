import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./ocr_system.db")
DB_POOL_SIZE = int(os.environ.get("DB_POOL_SIZE", "5"))
DB_MAX_OVERFLOW = int(os.environ.get("DB_MAX_OVERFLOW", "10"))
DB_POOL_RECYCLE_SEC = int(os.environ.get("DB_POOL_RECYCLE_SEC", "1800"))

FIREBASE_PROJECT_ID = os.environ.get("FIREBASE_PROJECT_ID", "").strip()
TOKEN_CLOCK_SKEW_SEC = int(os.environ.get("TOKEN_CLOCK_SKEW_SEC", "60"))

GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "").strip()
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash").strip()
GEMINI_BASE_URL = os.environ.get("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com").rstrip("/")
GEMINI_TIMEOUT_SEC = float(os.environ.get("GEMINI_TIMEOUT_SEC", "60"))
# SQLite: an upload holds the write lock while Gemini runs, so waiters must outlast it
SQLITE_BUSY_TIMEOUT_SEC = float(os.environ.get("SQLITE_BUSY_TIMEOUT_SEC", str(GEMINI_TIMEOUT_SEC + 15)))

OCR_MAX_UPLOAD_BYTES = int(os.environ.get("OCR_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
OCR_ALLOWED_MIME_TYPES = tuple(
    x.strip().lower()
    for x in os.environ.get("OCR_ALLOWED_MIME_TYPES", "image/jpeg,image/png,application/pdf").split(",")
    if x.strip()
)
OCR_DEFAULT_LANGUAGE = "eng"
OCR_DEFAULT_DOCUMENT_TYPE = "general"

DEFAULT_ADMIN_UID = os.environ.get("DEFAULT_ADMIN_UID", "admin-default")
DEFAULT_ADMIN_EMAIL = os.environ.get("DEFAULT_ADMIN_EMAIL", "admin@example.com")
DEFAULT_ADMIN_USERNAME = os.environ.get("DEFAULT_ADMIN_USERNAME", "admin")
