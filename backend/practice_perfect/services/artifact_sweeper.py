"""Expired artifact sweeper.

asyncio background task via FastAPI lifespan event. Deletes expired sign-in
artifacts on a fixed interval. Best effort only: verification already
ignores expired rows, so a missed pass never affects correctness.
"""

import asyncio
import contextlib
import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from practice_perfect.repositories.verification_artifact_repository import (
    VerificationArtifactRepository,
)

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60 * 60


class ArtifactSweeper:
    """Background worker that periodically purges expired artifacts.

    Lifecycle:
    - start() creates an asyncio task that runs the sweep loop.
    - stop() cancels the task and waits for graceful shutdown.
    - run_once() executes a single sweep (for testing).

    Args:
        session_factory: Async session factory for DB access.
        interval_seconds: Seconds between sweeps.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self._session_factory = session_factory
        self._interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._last_run_at: datetime | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the background task is currently active."""
        return self._running and self._task is not None and not self._task.done()

    @property
    def last_run_at(self) -> datetime | None:
        """Timestamp of the most recent completed sweep."""
        return self._last_run_at

    def start(self) -> None:
        """Start the background sweep loop.

        Creates an asyncio task. No-op if already running.
        Must be called from an async context (running event loop).
        """
        if self.is_running:
            logger.warning("Artifact sweeper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Artifact sweeper started (interval=%ds)", self._interval_seconds)

    async def stop(self) -> None:
        """Stop the background sweep loop.

        Cancels the task and waits for it to finish.
        """
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Artifact sweeper stopped")

    async def run_once(self) -> int:
        """Execute a single sweep.

        Returns:
            Number of expired artifacts deleted.
        """
        now = datetime.now(UTC)
        async with self._session_factory() as db:
            deleted = await VerificationArtifactRepository.delete_expired(db, now=now)
            await db.commit()
        self._last_run_at = now
        return deleted

    async def _run_loop(self) -> None:
        """Background loop: run_once -> sleep -> repeat."""
        try:
            while self._running:
                try:
                    deleted = await self.run_once()
                    if deleted:
                        logger.info("Swept %d expired sign-in artifacts", deleted)
                except Exception:  # noqa: BLE001
                    logger.exception("Error in artifact sweep")
                await asyncio.sleep(self._interval_seconds)
        except asyncio.CancelledError:
            logger.debug("Artifact sweep loop cancelled")
            raise
