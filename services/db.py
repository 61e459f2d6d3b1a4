# services/db.py
import logging
import time
from datetime import datetime, timezone

from fastapi import Request
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine

from config import DB_MAX_OVERFLOW, DB_POOL_RECYCLE_SEC, DB_POOL_SIZE, SQLITE_BUSY_TIMEOUT_SEC

logger = logging.getLogger("api.db")

metadata = MetaData()

# -----------------------------------------------------------------------------
# Tables
# -----------------------------------------------------------------------------

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("firebase_uid", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False),
    Column("username", String(255), nullable=False),
    Column("role", String(50), nullable=False, default="user"),
    Column("disabled", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("last_login_at", DateTime(timezone=True), nullable=True),
)

ocr_histories = Table(
    "ocr_histories",
    metadata,
    Column("ocr_history_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False, index=True),
    Column("firebase_uid", String(255), nullable=False, index=True),
    Column("file_name", String(512), nullable=False),
    Column("original_file_path", String(1024), nullable=False, default="N/A"),
    Column("processed_text", Text, nullable=False, default=""),
    Column("status", String(20), nullable=False),
    Column("image_mime_type", String(255), nullable=True),
    Column("image_size", BigInteger, nullable=True),
    Column("document_type", String(100), nullable=False),
    Column("error_message", Text, nullable=True),
    Column("processing_time_ms", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def row_to_dict(row) -> dict | None:
    return dict(row._mapping) if row is not None else None


# -----------------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------------

def create_db_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # handlers run on the threadpool
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SEC},
        )
    else:
        engine = create_engine(
            database_url,
            pool_size=DB_POOL_SIZE,
            max_overflow=DB_MAX_OVERFLOW,
            pool_recycle=DB_POOL_RECYCLE_SEC,
            pool_pre_ping=True,
        )
    logger.info("db_engine_created dialect=%s pool=%s", engine.dialect.name, engine.pool.__class__.__name__)
    return engine


def ensure_schema(engine: Engine) -> None:
    metadata.create_all(engine, checkfirst=True)
    logger.info("db_schema_ready tables=%s", sorted(metadata.tables.keys()))


def ping(engine: Engine) -> int:
    """Round-trip a trivial query; returns latency in ms."""
    t0 = time.perf_counter()
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return int((time.perf_counter() - t0) * 1000)


def get_engine(request: Request) -> Engine:
    return request.app.state.engine
