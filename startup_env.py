import logging
import os
from typing import List

logger = logging.getLogger("api.startup")

_DATABASE_SCHEMES = ("postgresql", "postgresql+psycopg", "sqlite", "mssql+pyodbc", "mysql+pymysql")


def _is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _validate_database_url(value: str | None, errors: List[str]) -> None:
    if _is_blank(value):
        # config.py falls back to a local SQLite file
        return
    scheme = str(value).split("://", 1)[0].strip().lower()
    if "://" not in str(value) or scheme not in _DATABASE_SCHEMES:
        errors.append(f"DATABASE_URL must use one of {', '.join(_DATABASE_SCHEMES)}")


def _validate_positive_number(key: str, errors: List[str]) -> None:
    raw = os.getenv(key)
    if _is_blank(raw):
        return
    try:
        value = float(str(raw).strip())
    except ValueError:
        errors.append(f"{key} must be a number")
        return
    if value <= 0:
        errors.append(f"{key} must be greater than zero")


def _validate_cors_allow_origins(value: str | None, errors: List[str]) -> None:
    if _is_blank(value):
        return

    origins = [x.strip() for x in str(value).split(",") if x.strip()]
    for origin in origins:
        if origin == "*":
            errors.append("CORS_ALLOW_ORIGINS must not contain '*' in strict allowlist mode")
            continue
        if not (origin.startswith("http://") or origin.startswith("https://")):
            errors.append(f"CORS origin must start with http:// or https://: {origin}")


def validate_startup_env() -> None:
    errors: List[str] = []
    warnings: List[str] = []

    required = [
        "FIREBASE_PROJECT_ID",
        "GEMINI_API_KEY",
    ]
    for key in required:
        if _is_blank(os.getenv(key)):
            errors.append(f"{key} is required")

    _validate_database_url(os.getenv("DATABASE_URL"), errors)
    _validate_cors_allow_origins(os.getenv("CORS_ALLOW_ORIGINS"), errors)
    for key in ("GEMINI_TIMEOUT_SEC", "OCR_MAX_UPLOAD_BYTES", "SQLITE_BUSY_TIMEOUT_SEC"):
        _validate_positive_number(key, errors)

    if _is_blank(os.getenv("DATABASE_URL")):
        warnings.append("DATABASE_URL is not set; using local SQLite database ./ocr_system.db")

    if errors:
        for err in errors:
            logger.error("startup_env_invalid %s", err)
        raise RuntimeError("Startup env validation failed: " + "; ".join(errors))

    for warning in warnings:
        logger.warning("startup_env_warning %s", warning)

    logger.info(
        "startup_env_validated keys=%s",
        ["FIREBASE_PROJECT_ID", "GEMINI_API_KEY", "DATABASE_URL", "CORS_ALLOW_ORIGINS"],
    )
