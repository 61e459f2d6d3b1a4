# services/ocr_delegate.py
import base64
import json
import logging

import requests
from fastapi import Request

from services.ocr_prompts import build_ocr_prompt

logger = logging.getLogger("api.ocr_delegate")

GENERATION_CONFIG = {
    "temperature": 0.1,
    "topK": 1,
    "topP": 1,
    "maxOutputTokens": 2048,
    "responseMimeType": "application/json",
}

SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_NONE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]


class OcrDelegateError(Exception):
    pass


def format_ocr_text(raw_text: str) -> str:
    """Pretty-print a JSON answer; anything else is kept verbatim."""
    try:
        parsed = json.loads(raw_text)
    except (TypeError, ValueError):
        logger.warning("ocr_delegate_non_json_response chars=%s", len(raw_text or ""))
        return raw_text
    return json.dumps(parsed, indent=2, ensure_ascii=False)


def _extract_text(body: dict) -> str:
    feedback = body.get("promptFeedback") or {}
    if feedback.get("blockReason"):
        raise OcrDelegateError(f"Prompt blocked: {feedback['blockReason']}")

    candidates = body.get("candidates") or []
    if not candidates:
        raise OcrDelegateError("Empty response from model")

    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(str(part.get("text") or "") for part in parts)
    if not text:
        finish_reason = candidates[0].get("finishReason") or "UNKNOWN"
        raise OcrDelegateError(f"No text in model response (finishReason={finish_reason})")
    return text


class GeminiOcrDelegate:
    """Sends document bytes plus a document-type prompt to Gemini generateContent.

    Every call is bounded by ``timeout_sec``; a timeout surfaces as
    OcrDelegateError like any other failure.
    """

    def __init__(self, *, api_key: str, model: str, base_url: str, timeout_sec: float, session=None):
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY not set")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    def build_payload(self, content: bytes, mime_type: str, ocr_language: str, document_type: str) -> dict:
        return {
            "contents": [
                {
                    "parts": [
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(content).decode("ascii"),
                            }
                        },
                        {"text": build_ocr_prompt(document_type, ocr_language)},
                    ]
                }
            ],
            "generationConfig": GENERATION_CONFIG,
            "safetySettings": SAFETY_SETTINGS,
        }

    def perform_ocr(self, content: bytes, mime_type: str, ocr_language: str, document_type: str) -> str:
        payload = self.build_payload(content, mime_type, ocr_language, document_type)
        try:
            resp = self.session.post(
                self.endpoint,
                json=payload,
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout_sec,
            )
            resp.raise_for_status()
            text = _extract_text(resp.json())
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "unknown"
            message = _api_error_message(exc.response) or str(exc)
            logger.error("ocr_delegate_http_error status=%s model=%s", status, self.model)
            raise OcrDelegateError(f"Gemini API Error: Status {status} - {message}") from exc
        except (requests.RequestException, ValueError, OcrDelegateError) as exc:
            logger.error("ocr_delegate_failed model=%s error=%s: %s", self.model, exc.__class__.__name__, exc)
            raise OcrDelegateError(f"Failed to perform OCR with Gemini: {exc}") from exc

        return format_ocr_text(text)


def _api_error_message(response) -> str:
    if response is None:
        return ""
    try:
        return str((response.json().get("error") or {}).get("message") or "")
    except ValueError:
        return (response.text or "")[:200]


def get_ocr_delegate(request: Request):
    return request.app.state.ocr_delegate
