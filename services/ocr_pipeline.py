# User value: every upload ends with a saved completed/failed record, so users always see what happened to their file.
# services/ocr_pipeline.py
import logging
import time

from sqlalchemy.engine import Engine

from schemas.ocr_contract import OCR_STATUS_COMPLETED, OCR_STATUS_FAILED, UPLOAD_SUCCESS_MESSAGE
from services.ocr_history import fetch_record, finalize_record, insert_pending_record, mark_record_failed
from utils.metrics import incr, observe_ms
from utils.stage_logging import log_stage

logger = logging.getLogger("api.ocr_pipeline")


class OcrSubmissionError(Exception):
    """Unexpected failure while recording an upload; ``record_id`` is None before the insert."""

    def __init__(self, message: str, *, record_id: int | None = None, error: str = ""):
        super().__init__(message)
        self.message = message
        self.record_id = record_id
        self.error = error


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def run_delegate(delegate, *, content: bytes, mime_type: str, ocr_language: str, document_type: str, uid: str) -> dict:
    """Call the OCR delegate; a delegate failure becomes a ``failed`` outcome, never an exception."""
    started = time.perf_counter()
    try:
        text = delegate.perform_ocr(content, mime_type, ocr_language, document_type)
        outcome = {
            "status": OCR_STATUS_COMPLETED,
            "processed_text": text,
            "error_message": None,
        }
    except Exception as exc:
        message = str(exc) or "Unknown OCR error"
        outcome = {
            "status": OCR_STATUS_FAILED,
            "processed_text": f"OCR processing failed: {message}",
            "error_message": message,
        }
        log_stage(stage="OCR_DELEGATE", event="FAILED", uid=uid, error=f"{exc.__class__.__name__}: {message}")

    outcome["processing_time_ms"] = _elapsed_ms(started)
    observe_ms("api_ocr_delegate_latency_ms", outcome["processing_time_ms"], status=outcome["status"])
    return outcome


def _rollback(transaction, record_id: int | None) -> None:
    if not transaction.is_active:
        return
    try:
        transaction.rollback()
        logger.info("ocr_transaction_rolled_back record_id=%s", record_id)
    except Exception as exc:
        logger.error("ocr_transaction_rollback_failed record_id=%s error=%s", record_id, exc)


def _compensate(engine: Engine, record_id: int, error: str, processing_time_ms: int, fallback: dict) -> None:
    try:
        failed_id = mark_record_failed(
            engine,
            record_id,
            error_message=error,
            processing_time_ms=processing_time_ms,
            fallback=fallback,
        )
        log_stage(
            stage="OCR_COMPENSATION",
            event="COMPLETED",
            record_id=failed_id,
            uid=fallback["firebase_uid"],
            original_record_id=record_id,
        )
    except Exception as exc:
        logger.error("ocr_compensation_failed record_id=%s error=%s: %s", record_id, exc.__class__.__name__, exc)


def submit_ocr_job(
    engine: Engine,
    delegate,
    *,
    content: bytes,
    mime_type: str,
    image_size: int,
    file_name: str,
    ocr_language: str,
    document_type: str,
    user: dict,
) -> dict:
    """Insert pending, run OCR, record the terminal state, all on one transaction.

    Returns the committed record. Raises OcrSubmissionError for anything other
    than a delegate failure.
    """
    uid = user["uid"]
    fallback = {
        "user_id": user["id"],
        "firebase_uid": uid,
        "file_name": file_name,
        "mime_type": mime_type,
        "image_size": image_size,
        "document_type": document_type,
    }
    log_stage(
        stage="OCR_UPLOAD",
        event="STARTED",
        uid=uid,
        file_name=file_name,
        mime_type=mime_type,
        image_size=image_size,
        document_type=document_type,
        ocr_language=ocr_language,
    )

    with engine.connect() as conn:
        transaction = conn.begin()
        try:
            record_id = insert_pending_record(
                conn,
                user_id=user["id"],
                firebase_uid=uid,
                file_name=file_name,
                mime_type=mime_type,
                image_size=image_size,
                document_type=document_type,
            )
        except Exception as exc:
            _rollback(transaction, None)
            incr("api_ocr_uploads_total", status="insert_error")
            log_stage(stage="OCR_UPLOAD", event="FAILED", uid=uid, error=f"{exc.__class__.__name__}: {exc}")
            raise OcrSubmissionError("Server error during initial upload process", error=str(exc)) from exc

        outcome = {"processing_time_ms": 0}
        try:
            outcome = run_delegate(
                delegate,
                content=content,
                mime_type=mime_type,
                ocr_language=ocr_language,
                document_type=document_type,
                uid=uid,
            )
            finalize_record(
                conn,
                record_id,
                status=outcome["status"],
                processed_text=outcome["processed_text"],
                error_message=outcome["error_message"],
                processing_time_ms=outcome["processing_time_ms"],
            )
            record = fetch_record(conn, record_id)
            transaction.commit()
        except Exception as exc:
            _rollback(transaction, record_id)
            error = str(exc) or exc.__class__.__name__
            log_stage(stage="OCR_UPLOAD", event="FAILED", record_id=record_id, uid=uid, error=error)
            _compensate(engine, record_id, error, outcome["processing_time_ms"], fallback)
            incr("api_ocr_uploads_total", status="server_error")
            raise OcrSubmissionError("Server error during OCR processing", record_id=record_id, error=error) from exc

    incr("api_ocr_uploads_total", status=record["status"])
    log_stage(
        stage="OCR_UPLOAD",
        event="COMPLETED",
        record_id=record_id,
        uid=uid,
        status=record["status"],
        processing_time_ms=record["processing_time_ms"],
    )
    return {"msg": UPLOAD_SUCCESS_MESSAGE, **record}
