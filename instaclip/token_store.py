"""
In-memory registry of download tokens.

A token maps to the CDN URL a resolved post points at. Entries live until the
background sweep finds them older than max_age, so a token can still be read
for up to one sweep interval after it has technically expired. Reads do not
check age.
"""

import asyncio
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from instaclip.config import TOKEN_MAX_AGE_SECONDS, TOKEN_SWEEP_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


def new_token() -> str:
    return secrets.token_urlsafe(16)


@dataclass(frozen=True)
class TokenEntry:
    url: str
    created_at: float


class TokenStore:
    def __init__(
        self,
        max_age: float = TOKEN_MAX_AGE_SECONDS,
        sweep_interval: float = TOKEN_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_age = max_age
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: Dict[str, TokenEntry] = {}
        self._lock = threading.Lock()
        self._sweep_task: Optional[asyncio.Task] = None

    def put(self, token: str, url: str) -> None:
        if not token:
            raise ValueError("token must be a non-empty string")
        entry = TokenEntry(url=url, created_at=self._clock())
        with self._lock:
            # Last write wins on collision
            self._entries[token] = entry

    def get(self, token: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(token)
        return entry.url if entry else None

    def delete(self, token: str) -> None:
        with self._lock:
            self._entries.pop(token, None)

    def sweep(self) -> int:
        """Remove entries older than max_age. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [
                token
                for token, entry in self._entries.items()
                if now - entry.created_at > self.max_age
            ]
            for token in expired:
                del self._entries[token]
            remaining = len(self._entries)

        if expired:
            logger.debug("Swept %d expired download tokens, %d remaining", len(expired), remaining)
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._entries

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self.running:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
        logger.info(
            "Token sweep started (max age %ss, every %ss)", self.max_age, self.sweep_interval
        )

    async def stop(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Token sweep stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Token sweep failed")
