# routes/ocr.py
import logging
from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile

from config import OCR_ALLOWED_MIME_TYPES, OCR_DEFAULT_DOCUMENT_TYPE, OCR_DEFAULT_LANGUAGE, OCR_MAX_UPLOAD_BYTES
from schemas.responses import OcrHistoryItem, OcrRecordResponse
from services.auth import get_current_user
from services.db import get_engine
from services.ocr_delegate import get_ocr_delegate
from services.ocr_history import get_history_item, list_history
from services.ocr_pipeline import OcrSubmissionError, submit_ocr_job
from utils import errors
from utils.metrics import incr
from utils.stage_logging import log_stage

router = APIRouter(prefix="/api/ocr", tags=["ocr"])
logger = logging.getLogger("api.ocr")


def validate_upload(*, file_name: str, mime_type: str, size_bytes: int) -> None:
    if mime_type not in OCR_ALLOWED_MIME_TYPES:
        incr("api_ocr_upload_rejected_total", reason="mime_type")
        raise errors.bad_request(
            f"Invalid file type: {mime_type or 'unknown'}. Allowed: {', '.join(OCR_ALLOWED_MIME_TYPES)}",
            error_code="UNSUPPORTED_MIME_TYPE",
        )
    if size_bytes <= 0:
        incr("api_ocr_upload_rejected_total", reason="empty")
        raise errors.bad_request(f"Uploaded file is empty: {file_name}", error_code="EMPTY_UPLOAD")
    if size_bytes > OCR_MAX_UPLOAD_BYTES:
        incr("api_ocr_upload_rejected_total", reason="too_large")
        raise errors.payload_too_large(f"File exceeds the {OCR_MAX_UPLOAD_BYTES} byte upload limit")


@router.post("/upload", response_model=OcrRecordResponse)
# User value: runs OCR on an uploaded document and saves the outcome to the user's history.
def upload(
    file: UploadFile | None = File(None),
    ocr_language: str | None = Form(None, alias="ocrLanguage"),
    document_type: str | None = Form(None, alias="documentType"),
    user=Depends(get_current_user),
    engine=Depends(get_engine),
    delegate=Depends(get_ocr_delegate),
):
    if file is None or not file.filename:
        incr("api_ocr_upload_rejected_total", reason="missing_file")
        raise errors.bad_request("No file uploaded", error_code="MISSING_FILE")

    mime_type = (file.content_type or "").split(";", 1)[0].strip().lower()
    if file.size is not None:
        validate_upload(file_name=file.filename, mime_type=mime_type, size_bytes=file.size)
    # never buffer more than one byte past the limit
    content = file.file.read(OCR_MAX_UPLOAD_BYTES + 1)
    validate_upload(file_name=file.filename, mime_type=mime_type, size_bytes=len(content))

    try:
        return submit_ocr_job(
            engine,
            delegate,
            content=content,
            mime_type=mime_type,
            image_size=len(content),
            file_name=file.filename,
            ocr_language=(ocr_language or "").strip() or OCR_DEFAULT_LANGUAGE,
            document_type=(document_type or "").strip() or OCR_DEFAULT_DOCUMENT_TYPE,
            user=user,
        )
    except OcrSubmissionError as exc:
        raise errors.server_error(exc.message, error=exc.error) from exc


@router.get("/history", response_model=List[OcrHistoryItem])
# User value: lists the user's past OCR results, most recently updated first.
def history(user=Depends(get_current_user), engine=Depends(get_engine)):
    items = list_history(engine, user["uid"])
    log_stage(stage="OCR_HISTORY_LIST", event="COMPLETED", uid=user["uid"], returned_count=len(items))
    return items


@router.get("/history/{record_id}", response_model=OcrHistoryItem)
def history_item(record_id: int, user=Depends(get_current_user), engine=Depends(get_engine)):
    item = get_history_item(engine, record_id, user["uid"])
    if item is None:
        raise errors.not_found("History item not found or unauthorized")
    return item
