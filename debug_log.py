from __future__ import annotations

import json
import time
from typing import Any, Mapping, Optional

from app_config import debug_log_path


def debug_log(*, location: str, message: str, data: Optional[Mapping[str, Any]] = None) -> None:
    """
    Append one JSON object per event to the debug log (PANEL_DEBUG_LOG).

    No-op when the variable is unset. A failed write is dropped.
    """
    path = debug_log_path()
    if not path:
        return
    payload = {
        "location": location,
        "message": message,
        "data": dict(data or {}),
        "timestamp": int(time.time() * 1000),
    }
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload, default=str) + "\n")
    except OSError:
        pass
