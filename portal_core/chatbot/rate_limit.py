"""
Rate limiting en memoria para el chat.

Ventana deslizante por identificador de cliente (`user:<id>`,
`session:<token>`, `phone:<número>` o `ip:<dirección>`). El estado es local
al proceso: con varios workers cada uno lleva su propia cuenta.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from typing import Callable

from ..config import get_settings

logger = logging.getLogger(__name__)

_CLEANUP_INTERVAL_SECONDS = 300


class RateLimiter:
    """Rate limiter de ventana deslizante con limpieza periódica."""

    def __init__(
        self,
        max_requests: int = 50,
        window_seconds: int = 900,
        max_clients: int = 10000,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_clients = max_clients
        self._clock = clock
        self._requests: dict[str, list[float]] = defaultdict(list)
        self._last_cleanup = clock()
        self._lock = threading.Lock()

    def is_allowed(self, identifier: str) -> bool:
        """Registra la request y devuelve False si el cliente superó el límite."""
        now = self._clock()
        with self._lock:
            if now - self._last_cleanup > _CLEANUP_INTERVAL_SECONDS:
                self._cleanup(now)
                self._last_cleanup = now

            recent = [t for t in self._requests[identifier] if now - t < self.window_seconds]
            if len(recent) >= self.max_requests:
                self._requests[identifier] = recent
                return False
            recent.append(now)
            self._requests[identifier] = recent
            return True

    def remaining(self, identifier: str) -> int:
        now = self._clock()
        with self._lock:
            recent = [t for t in self._requests.get(identifier, []) if now - t < self.window_seconds]
        return max(0, self.max_requests - len(recent))

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()

    def _cleanup(self, now: float) -> None:
        for identifier in list(self._requests):
            self._requests[identifier] = [t for t in self._requests[identifier] if now - t < self.window_seconds]
            if not self._requests[identifier]:
                del self._requests[identifier]

        if len(self._requests) > self.max_clients:
            newest = sorted(self._requests.items(), key=lambda kv: max(kv[1]), reverse=True)[:self.max_clients]
            self._requests = defaultdict(list, dict(newest))
        logger.info(f"🧹 Rate limiter cleanup: {len(self._requests)} clientes activos")


def client_identifier(
    user_id: str | None = None,
    session_token: str | None = None,
    phone_number: str | None = None,
    ip: str | None = None,
) -> str:
    """Identificador de rate limit, en orden de preferencia usuario > sesión > teléfono > IP."""
    if user_id:
        return f"user:{user_id}"
    if session_token:
        return f"session:{session_token}"
    if phone_number:
        return f"phone:{phone_number}"
    return f"ip:{ip or 'unknown'}"


_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Rate limiter global del proceso, configurado desde `Settings`."""
    global _limiter
    if _limiter is None:
        settings = get_settings()
        _limiter = RateLimiter(
            max_requests=settings.chat_rate_limit_max_requests,
            window_seconds=settings.chat_rate_limit_window_seconds,
        )
    return _limiter
