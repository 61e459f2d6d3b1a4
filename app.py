# User value: This file wires sign-in, OCR uploads and history into one API the web client can rely on.
# app.py
import os
import logging
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from utils.json_logging import configure_json_logging
from utils.metrics import incr, observe_ms

# Load env before importing modules that read os.getenv at import time.
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))


def configure_logging() -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    configure_json_logging(service="doc-ocr-api", level=level)


configure_logging()
logger = logging.getLogger("api.error")

import config
from startup_env import validate_startup_env
from utils.request_context import (
    REQUEST_ID_HEADER,
    get_request_id,
    normalize_request_id,
    set_request_id,
    set_request_uid,
)
from services.db import create_db_engine
from services.identity import FirebaseIdentityVerifier
from services.ocr_delegate import GeminiOcrDelegate
from services.users import bootstrap_user_directory

from routes.auth import router as auth_router
from routes.users import router as users_router
from routes.ocr import router as ocr_router
from routes.health import router as health_router


def _parse_csv_env(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    values = [x.strip() for x in raw.split(",") if x.strip()]
    seen = set()
    ordered = []
    for item in values:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def _extract_error_message(detail) -> str:
    if isinstance(detail, dict):
        return str(detail.get("message") or detail.get("error_message") or detail.get("detail") or detail)
    if isinstance(detail, list):
        return "; ".join(str(x) for x in detail)
    return str(detail)


def _to_error_code(status_code: int, detail) -> str:
    if isinstance(detail, dict) and detail.get("error_code"):
        return str(detail.get("error_code")).strip().upper()
    if status_code == 401:
        return "AUTH_UNAUTHORIZED"
    if status_code == 403:
        return "AUTH_FORBIDDEN"
    if status_code == 404:
        return "RESOURCE_NOT_FOUND"
    if status_code == 405:
        return "METHOD_NOT_ALLOWED"
    if status_code == 400:
        return "INVALID_REQUEST"
    return f"HTTP_{status_code}"


def _error_body(*, request: Request, status_code: int, detail, message: str | None = None) -> dict:
    request_id = get_request_id() or normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
    body = {
        "success": False,
        "message": message or _extract_error_message(detail),
        "error_code": _to_error_code(status_code, detail),
        "path": request.url.path,
        "request_id": request_id,
    }
    if isinstance(detail, dict) and detail.get("error"):
        body["error"] = str(detail["error"])
    return body


async def request_id_middleware(request: Request, call_next):
    request_id = normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = int(getattr(response, "status_code", 500))
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        duration_ms = (time.perf_counter() - started) * 1000.0
        method = request.method.upper()
        path = request.url.path
        status_class = f"{status_code // 100}xx"
        incr("api_http_requests_total", method=method, path=path, status_class=status_class, status_code=status_code)
        observe_ms("api_http_request_latency_ms", duration_ms, method=method, path=path, status_class=status_class)
        set_request_id(None)
        set_request_uid(None)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = _error_body(
        request=request,
        status_code=422,
        detail=exc.errors(),
        message="Request validation failed",
    )
    body["error_code"] = "VALIDATION_ERROR"
    body["detail"] = exc.errors()
    logger.warning(
        "request_failed_validation status=422 path=%s request_id=%s error_code=%s",
        request.url.path,
        body["request_id"],
        body["error_code"],
    )
    return JSONResponse(status_code=422, content=jsonable_encoder(body))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = _error_body(request=request, status_code=exc.status_code, detail=exc.detail)
    logger.warning(
        "request_failed status=%s path=%s request_id=%s error_code=%s message=%s",
        exc.status_code,
        request.url.path,
        body["request_id"],
        body["error_code"],
        body["message"],
    )
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = get_request_id() or normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
    logger.exception(
        "request_failed_unhandled path=%s request_id=%s error=%s: %s",
        request.url.path,
        request_id,
        exc.__class__.__name__,
        exc,
    )
    body = _error_body(
        request=request,
        status_code=500,
        detail="Unhandled server exception",
        message="Internal server error",
    )
    body["error_code"] = "INTERNAL_SERVER_ERROR"
    return JSONResponse(status_code=500, content=body)


def _build_default_collaborators(state) -> None:
    if state.engine is None or state.identity_verifier is None or state.ocr_delegate is None:
        validate_startup_env()

    if state.engine is None:
        state.engine = create_db_engine(config.DATABASE_URL)
        state.owns_engine = True
    if state.identity_verifier is None:
        state.identity_verifier = FirebaseIdentityVerifier(
            config.FIREBASE_PROJECT_ID,
            clock_skew_sec=config.TOKEN_CLOCK_SKEW_SEC,
        )
    if state.ocr_delegate is None:
        state.ocr_delegate = GeminiOcrDelegate(
            api_key=config.GEMINI_API_KEY,
            model=config.GEMINI_MODEL,
            base_url=config.GEMINI_BASE_URL,
            timeout_sec=config.GEMINI_TIMEOUT_SEC,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = app.state
    _build_default_collaborators(state)
    state.user_directory = bootstrap_user_directory(state.engine)
    logger.info(
        "app_started dialect=%s verifier=%s delegate=%s",
        state.engine.dialect.name,
        state.identity_verifier.__class__.__name__,
        state.ocr_delegate.__class__.__name__,
    )
    try:
        yield
    finally:
        if state.owns_engine:
            state.engine.dispose()
            logger.info("app_stopped engine_disposed=true")


def create_app(*, engine=None, identity_verifier=None, ocr_delegate=None) -> FastAPI:
    """Build the API; any collaborator left as None is created from env at start-up."""
    app = FastAPI(title="Doc OCR API", lifespan=lifespan)
    app.state.engine = engine
    app.state.owns_engine = False
    app.state.identity_verifier = identity_verifier
    app.state.ocr_delegate = ocr_delegate
    app.state.user_directory = None

    app.middleware("http")(request_id_middleware)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    cors_allow_origins = _parse_csv_env("CORS_ALLOW_ORIGINS", "http://localhost:3000")
    cors_allow_origin_regex = (os.getenv("CORS_ALLOW_ORIGIN_REGEX") or "").strip() or None
    logger.info(
        "cors_configured allow_origins=%s allow_origin_regex=%s",
        cors_allow_origins,
        cors_allow_origin_regex or "",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_allow_origins,
        allow_origin_regex=cors_allow_origin_regex,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(ocr_router)
    app.include_router(health_router)
    return app


app = create_app()
