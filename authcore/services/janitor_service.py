"""Background housekeeping that removes expired sessions on a fixed cadence."""

import asyncio
from typing import Optional

import structlog

from authcore.config import get_settings
from authcore.errors import AuthError
from authcore.services.session_service import SessionStore

logger = structlog.get_logger(__name__)


class SessionJanitor:
    """Runs ``SessionStore.sweep_expired`` every interval until stopped."""

    def __init__(
        self,
        session_store: Optional[SessionStore] = None,
        interval_seconds: Optional[int] = None,
    ):
        self.session_store = session_store or SessionStore()
        self.interval_seconds = interval_seconds or get_settings().session_sweep_interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the sweep loop as an asyncio background task. No-op if already running."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("session_janitor_started", interval_seconds=self.interval_seconds)

    async def stop(self):
        """Stop the sweep loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("session_janitor_stopped")

    async def _sweep_loop(self):
        while self._running:
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("session_janitor_sweep_error", error=str(e))

            try:
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break

    async def sweep_once(self) -> int:
        """Run one sweep; a failing cycle is logged and reported as zero."""
        try:
            return await self.session_store.sweep_expired()
        except AuthError as e:
            logger.error("session_janitor_sweep_error", error=e.message)
            return 0
