"""Session poller for automatic pipeline runs.

Given a session identifier, fetches ``/pipeline/status/{id}`` at a fixed
period, stores each snapshot and notifies subscribers, and stops by itself
once the snapshot is terminal (``completed`` or ``error``).

At most one polling loop is live per poller. ``switch_to`` and ``stop``
invalidate the current ``PollHandle`` synchronously, before any new loop is
armed, so a fetch that was already in flight for the previous session can
never write its result.

A transport failure while fetching is treated as terminal for the loop
(the session itself may still be running on the engine). Set
``polling.transport_retries`` to retry transient failures first.

Usage:
    poller = SessionPoller(client)
    poller.subscribe(lambda sid, snap: print(sid, snap.phase, snap.progress))
    poller.switch_to(session_id)
    await poller.wait()
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from vidconsole.config import settings
from vidconsole.orchestrator.state import classify_phase, is_terminal
from vidconsole.schemas import PipelineStatus, StatusResponse
from vidconsole.services.engine_client import (
    EngineClient,
    EngineError,
    EngineTransportError,
    unwrap,
)

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, PipelineStatus], None]


@dataclass(eq=False)
class PollHandle:
    """Handle for one armed polling loop.

    A handle is live until it is cancelled by the poller or its loop
    finishes; a dead handle never becomes live again.
    """

    session_id: str
    generation: int
    task: Optional[asyncio.Task] = field(default=None, repr=False)
    cancelled: bool = False
    fetches: int = 0

    @property
    def active(self) -> bool:
        return not self.cancelled and self.task is not None and not self.task.done()

    def cancel(self) -> None:
        self.cancelled = True
        if self.task is not None and not self.task.done():
            self.task.cancel()


class SessionPoller:
    """Owns the act of refreshing pipeline session snapshots.

    UI surfaces read ``snapshot()`` / ``current`` and subscribe for updates;
    only this class writes snapshots.
    """

    def __init__(
        self,
        client: EngineClient,
        *,
        interval: Optional[float] = None,
        transport_retries: Optional[int] = None,
    ):
        self.client = client
        self.interval = settings.polling.interval if interval is None else interval
        self.transport_retries = (
            settings.polling.transport_retries
            if transport_retries is None
            else transport_retries
        )
        self.sessions: dict[str, PipelineStatus] = {}
        self.selected: Optional[str] = None
        self.last_error: Optional[str] = None
        self._handle: Optional[PollHandle] = None
        self._generation = 0
        self._subscribers: list[Subscriber] = []

    # --- read side ---------------------------------------------------------

    @property
    def handle(self) -> Optional[PollHandle]:
        return self._handle

    @property
    def is_polling(self) -> bool:
        return self._handle is not None and self._handle.active

    @property
    def current(self) -> Optional[PipelineStatus]:
        """Snapshot of the selected session, if any."""
        if self.selected is None:
            return None
        return self.sessions.get(self.selected)

    def snapshot(self, session_id: str) -> Optional[PipelineStatus]:
        return self.sessions.get(session_id)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber(session_id, snapshot)``; returns unsubscribe."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    # --- loop control ------------------------------------------------------

    def start(self, session_id: str) -> Optional[PollHandle]:
        """Arm a polling loop for ``session_id``.

        Any loop that is already armed is torn down first. A session whose
        known snapshot is already terminal is selected but not polled.

        Must be called from a running event loop.

        Returns:
            The new live handle, or None if the session is already terminal
        """
        self.stop()
        self.selected = session_id
        self.last_error = None

        known = self.sessions.get(session_id)
        if known is not None and is_terminal(known.status):
            logger.info(
                "Session %s already %s; not polling", session_id, known.status,
            )
            return None

        self._generation += 1
        handle = PollHandle(session_id=session_id, generation=self._generation)
        handle.task = asyncio.get_running_loop().create_task(
            self._run(handle), name=f"poll-{session_id}",
        )
        self._handle = handle
        logger.info(
            "Polling session %s every %.1fs (generation %d)",
            session_id, self.interval, handle.generation,
        )
        return handle

    def switch_to(self, session_id: str) -> Optional[PollHandle]:
        """Tear down the current loop and poll ``session_id`` instead."""
        if self._handle is not None and self._handle.session_id != session_id:
            logger.info(
                "Switching poller %s -> %s", self._handle.session_id, session_id,
            )
        return self.start(session_id)

    def stop(self) -> None:
        """Invalidate and cancel the armed loop, if any."""
        handle = self._handle
        self._handle = None
        if handle is not None and not handle.cancelled:
            handle.cancel()
            logger.debug("Stopped polling session %s", handle.session_id)

    async def wait(self) -> Optional[PipelineStatus]:
        """Wait for the armed loop to finish; returns the selected snapshot."""
        handle = self._handle
        if handle is not None and handle.task is not None:
            try:
                await asyncio.shield(handle.task)
            except asyncio.CancelledError:
                if not handle.cancelled:
                    raise
        return self.current

    async def list_known_sessions(self) -> dict[str, PipelineStatus]:
        """One-shot fetch of all sessions known to the engine.

        Merged into ``sessions``; snapshots that are already terminal are
        kept as they are. Independent of the polling loop.

        Raises:
            EngineError: If the list cannot be fetched
        """
        listing = unwrap(await self.client.list_pipelines())
        for session_id, snapshot in listing.sessions.items():
            known = self.sessions.get(session_id)
            if known is not None and is_terminal(known.status):
                continue
            # The armed loop owns its session's snapshot
            if self.is_polling and self._handle.session_id == session_id:
                continue
            self.sessions[session_id] = snapshot
        return dict(self.sessions)

    # --- loop body ---------------------------------------------------------

    def _is_live(self, handle: PollHandle) -> bool:
        return self._handle is handle and not handle.cancelled

    async def _fetch(self, session_id: str) -> StatusResponse[PipelineStatus]:
        if self.transport_retries <= 0:
            return await self.client.get_pipeline_status(session_id)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.transport_retries + 1),
            wait=wait_fixed(self.interval),
            retry=retry_if_exception_type(EngineTransportError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await self.client.get_pipeline_status(session_id)

    async def _run(self, handle: PollHandle) -> None:
        session_id = handle.session_id
        while True:
            await asyncio.sleep(self.interval)
            if not self._is_live(handle):
                return

            try:
                handle.fetches += 1
                response = await self._fetch(session_id)
            except EngineError as e:
                if self._is_live(handle):
                    self.last_error = str(e)
                    logger.warning(
                        "Stopped polling session %s after fetch failure: %s",
                        session_id, e,
                    )
                    self._finish(handle)
                return

            if not self._is_live(handle):
                # Invalidated while the fetch was in flight
                return

            snapshot = response.data
            if snapshot is None:
                # No snapshot to apply; keep the loop armed
                self.last_error = response.message or None
                logger.warning(
                    "Session %s status returned %s without data: %s",
                    session_id, response.status, response.message,
                )
                continue

            self._apply(session_id, snapshot)
            if is_terminal(snapshot.status):
                logger.info(
                    "Session %s reached %s after %d fetches",
                    session_id, snapshot.status, handle.fetches,
                )
                self._finish(handle)
                return

    def _apply(self, session_id: str, snapshot: PipelineStatus) -> None:
        known = self.sessions.get(session_id)
        if known is not None and is_terminal(known.status):
            return
        self.sessions[session_id] = snapshot
        phase = classify_phase(snapshot.phase)
        logger.debug(
            "Session %s: %s %d%% %s", session_id, phase.label, snapshot.progress, snapshot.message,
        )
        for subscriber in list(self._subscribers):
            try:
                subscriber(session_id, snapshot)
            except Exception:
                logger.exception("Poll subscriber %r failed", subscriber)

    def _finish(self, handle: PollHandle) -> None:
        handle.cancelled = True
        if self._handle is handle:
            self._handle = None
