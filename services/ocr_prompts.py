# User value: asks the model for the fields users actually need from each kind of business document.
from config import OCR_DEFAULT_DOCUMENT_TYPE

JSON_FORMAT_HINT = """
Respond strictly in JSON format.
Example:
{
    "document_type": "[detected_document_type]",
    "extracted_data": {
        // ... fields based on document_type
    },
    "full_text": "[full_extracted_text]"
}
"""

_MISSING_FIELD_RULE = "If a field is not found, use null or an empty string as appropriate."

_DOCUMENT_PROMPTS = {
    "invoice": (
        "You are an expert OCR system for invoices.\n"
        "Extract the following key information from this invoice:\n"
        '"invoice_number", "date" (format YYYY-MM-DD), "due_date" (format YYYY-MM-DD),\n'
        '"total_amount" (number), "currency", "vendor_name", "customer_name",\n'
        '"vendor_address", "customer_address",\n'
        '"items": [ { "description", "quantity" (number), "unit_price" (number), "line_total" (number) } ].'
    ),
    "credit note": (
        "You are an expert OCR system for credit notes.\n"
        "Extract the following key information from this credit note:\n"
        '"credit_note_number", "date" (format YYYY-MM-DD), "original_invoice_number",\n'
        '"vendor_address", "customer_address",\n'
        '"total_amount" (number), "currency", "reason_for_credit", "vendor_name", "customer_name".'
    ),
    "receipt": (
        "You are an expert OCR system for receipts.\n"
        "Extract the following key information from this receipt:\n"
        '"merchant_name", "date" (format YYYY-MM-DD), "time" (format HH:MM),\n'
        '"vendor_address", "customer_address",\n'
        '"total_amount" (number), "currency", "payment_method", "items": [ { "description", "amount" (number) } ].'
    ),
    "delivery note": (
        "You are an expert OCR system for delivery notes.\n"
        "Extract the following key information from this delivery note:\n"
        '"delivery_note_number", "date" (format YYYY-MM-DD), "delivery_address", "recipient_name", "sender_name",\n'
        '"vendor_address", "customer_address",\n'
        '"items": [ { "description", "quantity" (number) } ].'
    ),
}

_GENERIC_PROMPT = (
    "Extract all text from this image and identify the document type.\n"
    'Provide the extracted text in a structured JSON format, including the detected "document_type" and "full_text".\n'
    'If you can identify specific fields like dates, names, or amounts, include them in an "extracted_data" object.'
)

SPECIALISED_DOCUMENT_TYPES = tuple(_DOCUMENT_PROMPTS.keys())


def normalize_document_type(document_type: str | None) -> str:
    value = " ".join(str(document_type or "").split()).lower()
    return value or OCR_DEFAULT_DOCUMENT_TYPE


def build_ocr_prompt(document_type: str | None, ocr_language: str) -> str:
    key = normalize_document_type(document_type)
    specialised = _DOCUMENT_PROMPTS.get(key)
    if specialised is None:
        return f"{_GENERIC_PROMPT}\nLanguage hint: {ocr_language}.\n{JSON_FORMAT_HINT}"
    return (
        f"{specialised}\n"
        'Also provide the "full_text" of the document.\n'
        f"{_MISSING_FIELD_RULE}\n"
        f"Language hint: {ocr_language}.\n"
        f"{JSON_FORMAT_HINT}"
    )
