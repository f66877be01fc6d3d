import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

import aiohttp

from pulse.domain.models import PulseSnapshot
from pulse.infrastructure.github_client import GitHubRestClient

logger = logging.getLogger(__name__)

POLL_INTERVAL = 60.0  # Seconds between the starts of two refresh cycles
CONNECTOR_LIMIT = 10

SnapshotListener = Callable[[PulseSnapshot], None]


class PulseService:
    """
    Aggregates the activity feed, open pull requests and notifications into one
    snapshot and keeps it fresh on a fixed interval.

    Each refresh fetches the three resources concurrently and applies them all or
    not at all. A failed cycle keeps the previous data and only reports the error;
    the next scheduled cycle acts as the retry.
    """

    def __init__(
            self,
            github_client: GitHubRestClient,
            poll_interval: float = POLL_INTERVAL,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive.")
        self.github_client = github_client
        self.poll_interval = poll_interval
        self._snapshot = PulseSnapshot()
        self._listeners: List[SnapshotListener] = []
        self._poll_task: Optional[asyncio.Task] = None
        self._stop_requested: Optional[asyncio.Event] = None

    @property
    def snapshot(self) -> PulseSnapshot:
        return self._snapshot

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done() and not self._stop_requested.is_set()

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Registers a listener called with every published snapshot.

        Returns:
            Callable[[], None]: Removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, **changes) -> None:
        self._snapshot = self._snapshot.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Snapshot listener failed.")

    async def refresh(self) -> None:
        """Runs one refresh cycle. Fetch errors end up in snapshot.last_error, never raised."""
        self._publish(is_loading=True, last_error=None)

        try:
            async with aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=CONNECTOR_LIMIT),
            ) as session:
                results = await asyncio.gather(
                    self.github_client.fetch_events(session),
                    self.github_client.fetch_open_prs(session),
                    self.github_client.fetch_notifications(session),
                    return_exceptions=True,
                )
        except asyncio.CancelledError:
            self._publish(is_loading=False)
            raise

        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            error = errors[0]
            if isinstance(error, asyncio.CancelledError):
                self._publish(is_loading=False)
                raise error
            logger.error(f"Refresh failed: {error!r}")
            self._publish(is_loading=False, last_error=str(error) or type(error).__name__)
            return

        events, pull_requests, notifications = results
        unread_count = sum(1 for notification in notifications if notification.unread)
        self._publish(
            events=tuple(events),
            pull_requests=tuple(pull_requests),
            notifications=tuple(notifications),
            unread_count=unread_count,
            is_loading=False,
            last_updated=datetime.now(timezone.utc),
        )
        logger.info(
            f"Refreshed: {len(events)} events, {len(pull_requests)} open PRs, "
            f"{len(notifications)} notifications ({unread_count} unread)."
        )

    def start_polling(self) -> None:
        """
        Refreshes immediately, then once every poll_interval seconds until
        stop_polling() is called. Must be called from a running event loop.
        """
        if self.is_polling:
            return
        self._stop_requested = asyncio.Event()
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll(self._stop_requested)
        )
        logger.info(f"Polling every {self.poll_interval:.0f}s.")

    def stop_polling(self) -> None:
        """Stops scheduling new cycles; a cycle already running is left to finish."""
        if self._stop_requested is not None and not self._stop_requested.is_set():
            self._stop_requested.set()
            logger.info("Polling stopped.")

    async def wait_stopped(self) -> None:
        """Waits for the polling task to exit after stop_polling()."""
        if self._poll_task is not None:
            await self._poll_task

    async def _poll(self, stop_requested: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()
        while not stop_requested.is_set():
            next_run = loop.time() + self.poll_interval
            await self.refresh()
            delay = max(next_run - loop.time(), 0)
            try:
                await asyncio.wait_for(stop_requested.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue
