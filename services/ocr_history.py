# services/ocr_history.py
from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection, Engine

from schemas.ocr_contract import (
    HISTORY_FIELDS,
    ORIGINAL_FILE_PATH_PLACEHOLDER,
    OCR_STATUS_FAILED,
    OCR_STATUS_PENDING,
    RECORD_FIELDS,
    TERMINAL_STATUSES,
)
from services.db import ocr_histories, row_to_dict, utc_now


def _column(name: str):
    # records expose the primary key as "id"
    if name == "id":
        return ocr_histories.c.ocr_history_id.label("id")
    return ocr_histories.c[name]


_RECORD_COLUMNS = tuple(_column(name) for name in RECORD_FIELDS)
_HISTORY_COLUMNS = tuple(_column(name) for name in HISTORY_FIELDS)


def insert_pending_record(
    conn: Connection,
    *,
    user_id: int,
    firebase_uid: str,
    file_name: str,
    mime_type: str,
    image_size: int,
    document_type: str,
) -> int:
    now = utc_now()
    result = conn.execute(
        insert(ocr_histories).values(
            user_id=user_id,
            firebase_uid=firebase_uid,
            file_name=file_name,
            original_file_path=ORIGINAL_FILE_PATH_PLACEHOLDER,
            processed_text="",
            status=OCR_STATUS_PENDING,
            image_mime_type=mime_type,
            image_size=image_size,
            document_type=document_type,
            processing_time_ms=0,
            created_at=now,
            updated_at=now,
        )
    )
    return int(result.inserted_primary_key[0])


def finalize_record(
    conn: Connection,
    record_id: int,
    *,
    status: str,
    processed_text: str,
    error_message: str | None,
    processing_time_ms: int,
) -> int:
    if status not in TERMINAL_STATUSES:
        raise ValueError(f"Record must end in a terminal status, got {status!r}")
    result = conn.execute(
        update(ocr_histories)
        .where(ocr_histories.c.ocr_history_id == record_id)
        .values(
            processed_text=processed_text,
            status=status,
            error_message=error_message,
            processing_time_ms=processing_time_ms,
            updated_at=utc_now(),
        )
    )
    return result.rowcount


def fetch_record(conn: Connection, record_id: int) -> dict | None:
    row = conn.execute(select(*_RECORD_COLUMNS).where(ocr_histories.c.ocr_history_id == record_id)).first()
    return row_to_dict(row)


def mark_record_failed(
    engine: Engine,
    record_id: int,
    *,
    error_message: str,
    processing_time_ms: int,
    fallback: dict,
) -> int:
    """Compensating write on its own connection.

    Only a still-pending row owned by the same caller is updated; after a
    rollback the id may already belong to another upload. Otherwise a failed
    row built from ``fallback`` is inserted. Returns the id of the row that
    now carries the failure.
    """
    now = utc_now()
    with engine.begin() as conn:
        result = conn.execute(
            update(ocr_histories)
            .where(
                ocr_histories.c.ocr_history_id == record_id,
                ocr_histories.c.firebase_uid == fallback["firebase_uid"],
                ocr_histories.c.status == OCR_STATUS_PENDING,
            )
            .values(
                status=OCR_STATUS_FAILED,
                processed_text=f"Error: {error_message}",
                error_message=error_message,
                processing_time_ms=processing_time_ms,
                updated_at=now,
            )
        )
        if result.rowcount:
            return record_id

        inserted = conn.execute(
            insert(ocr_histories).values(
                user_id=fallback["user_id"],
                firebase_uid=fallback["firebase_uid"],
                file_name=fallback["file_name"],
                original_file_path=ORIGINAL_FILE_PATH_PLACEHOLDER,
                processed_text=f"Error: {error_message}",
                status=OCR_STATUS_FAILED,
                image_mime_type=fallback["mime_type"],
                image_size=fallback["image_size"],
                document_type=fallback["document_type"],
                error_message=error_message,
                processing_time_ms=processing_time_ms,
                created_at=now,
                updated_at=now,
            )
        )
        return int(inserted.inserted_primary_key[0])


def list_history(engine: Engine, firebase_uid: str) -> list[dict]:
    stmt = (
        select(*_HISTORY_COLUMNS)
        .where(ocr_histories.c.firebase_uid == firebase_uid)
        .order_by(ocr_histories.c.updated_at.desc(), ocr_histories.c.ocr_history_id.desc())
    )
    with engine.connect() as conn:
        return [row_to_dict(row) for row in conn.execute(stmt)]


def get_history_item(engine: Engine, record_id: int, firebase_uid: str) -> dict | None:
    stmt = select(*_HISTORY_COLUMNS).where(
        ocr_histories.c.ocr_history_id == record_id,
        ocr_histories.c.firebase_uid == firebase_uid,
    )
    with engine.connect() as conn:
        return row_to_dict(conn.execute(stmt).first())
