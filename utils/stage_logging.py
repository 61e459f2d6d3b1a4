import json
import logging
from datetime import date, datetime, timezone
from typing import Any

from utils.request_context import get_request_id

logger = logging.getLogger("api.stage")


def _norm(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def log_stage(
    *,
    stage: str,
    event: str,
    record_id: int | str | None = None,
    uid: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Emit one structured line per pipeline/gate step.

    FAILED events, or any event carrying ``error``, are logged at ERROR level.
    """
    payload = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "stage": stage,
        "event": event.upper(),
    }

    if record_id is not None:
        payload["record_id"] = record_id
    if uid:
        payload["uid"] = uid
    request_id = get_request_id()
    if request_id:
        payload["request_id"] = request_id
    if error:
        payload["error"] = error

    for key, value in extra.items():
        norm = _norm(value)
        if norm is not None:
            payload[key] = norm

    msg = json.dumps(payload, ensure_ascii=False)
    if error or payload["event"] == "FAILED":
        logger.error("stage_event %s", msg)
    else:
        logger.info("stage_event %s", msg)
