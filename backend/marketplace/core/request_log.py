import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class RequestLog:
    """Bounded, thread-safe ring buffer of recent requests (oldest evicted first)."""

    def __init__(self, capacity: int = 50) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: deque = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def record(
        self,
        method: str,
        url: str,
        ip: Optional[str],
        user_agent: Optional[str],
    ) -> Dict[str, Any]:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": method,
            "url": url,
            "ip": ip,
            "userAgent": user_agent,
            # POST gövdeleri loglanmaz
            "body": "[REDACTED]" if method.upper() == "POST" else None,
        }
        with self._lock:
            self._entries.append(entry)
        return entry

    def recent(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
