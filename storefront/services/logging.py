import json
import logging
import sys
from datetime import datetime, timezone

_LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}
_threshold = logging.INFO


def configure(level: str) -> None:
    """Set the minimum level for ``log_event`` and the stdlib root logger."""
    global _threshold
    _threshold = _LEVELS.get((level or "info").lower(), logging.INFO)
    logging.basicConfig(level=_threshold, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def log_event(level: str, event: str, **fields) -> None:
    if _LEVELS.get(level.lower(), logging.INFO) < _threshold:
        return
    payload = {
        "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "level": level.lower(),
        "event": event,
    }
    payload.update(fields or {})
    try:
        sys.stdout.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
    except (OSError, ValueError):
        # best-effort logging
        pass
