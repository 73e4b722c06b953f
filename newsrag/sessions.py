"""Chat session history stored in Redis.

Provides:
- create_redis: Redis client from a URL with decode_responses and socket timeouts.
- SessionStore: get/append/delete of a session's message list, TTL refreshed on write.

History is a JSON list of {"role", "content", "ts"} under ``session:<id>``.
"""
import json
import logging
import time
from typing import Any, Dict, List

import redis

logger = logging.getLogger(__name__)


def create_redis(url: str, timeout: float = 5.0) -> redis.Redis:
    """Return a Redis client configured from ``url``.

    Returns:
        redis.Redis: Client with decode_responses=True and explicit timeouts.
    """
    return redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )


class SessionStore:
    """Key-value session history with a sliding TTL.

    Args:
        client: Redis client.
        ttl_seconds: Expiry applied on every append.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int = 86400):
        self._redis = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(session_id: str) -> str:
        return f"session:{session_id}"

    def get_history(self, session_id: str) -> List[Dict[str, Any]]:
        """Return the session's messages (empty for unknown/corrupt sessions)."""
        raw = self._redis.get(self._key(session_id))
        if not raw:
            return []
        try:
            history = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable history for session %s", session_id)
            return []
        return history if isinstance(history, list) else []

    def append(self, session_id: str, role: str, content: str) -> None:
        """Append one message and refresh the session TTL."""
        history = self.get_history(session_id)
        history.append({"role": role, "content": content, "ts": int(time.time() * 1000)})
        self._redis.set(self._key(session_id), json.dumps(history), ex=self.ttl_seconds)

    def delete(self, session_id: str) -> None:
        self._redis.delete(self._key(session_id))
