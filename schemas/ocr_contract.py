OCR_STATUS_PENDING = "pending"
OCR_STATUS_COMPLETED = "completed"
OCR_STATUS_FAILED = "failed"

TERMINAL_STATUSES = (
    OCR_STATUS_COMPLETED,
    OCR_STATUS_FAILED,
)

# Uploads are processed from memory and never written to disk.
ORIGINAL_FILE_PATH_PLACEHOLDER = "N/A"

UPLOAD_SUCCESS_MESSAGE = "File uploaded and OCR processed"

RECORD_FIELDS = (
    "id",
    "user_id",
    "firebase_uid",
    "file_name",
    "original_file_path",
    "image_mime_type",
    "image_size",
    "processed_text",
    "status",
    "error_message",
    "processing_time_ms",
    "document_type",
    "created_at",
    "updated_at",
)

HISTORY_FIELDS = (
    "id",
    "file_name",
    "document_type",
    "status",
    "processed_text",
    "processing_time_ms",
    "image_mime_type",
    "updated_at",
)
