"""Quick Start call sites: start one end-to-end session and follow it."""

import logging
from typing import Optional

from vidconsole.orchestrator.poller import SessionPoller
from vidconsole.orchestrator.state import is_terminal
from vidconsole.schemas import PipelineStatus
from vidconsole.services.engine_client import EngineClient, EngineError, unwrap

logger = logging.getLogger(__name__)


class QuickStart:
    """Starts automatic pipeline sessions and hands them to the poller."""

    def __init__(self, client: EngineClient, poller: Optional[SessionPoller] = None):
        self.client = client
        self.poller = poller or SessionPoller(client)
        self.error: Optional[str] = None

    @property
    def current(self) -> Optional[PipelineStatus]:
        return self.poller.current

    @property
    def sessions(self) -> dict[str, PipelineStatus]:
        return self.poller.sessions

    async def start(self, topic: Optional[str] = None, skip_check: bool = False) -> Optional[str]:
        """Start a session for ``topic`` (empty means a random topic).

        Returns:
            The new session identifier, or None if the engine refused
        """
        self.error = None
        target = (topic or "").strip() or "random"
        try:
            ref = unwrap(await self.client.start_pipeline(target, skip_check))
        except EngineError as e:
            self.error = f"Could not start pipeline: {e}"
            logger.warning(self.error)
            return None

        logger.info("Started session %s for topic %r", ref.session_id, target)
        self.poller.switch_to(ref.session_id)
        await self.refresh_sessions()
        return ref.session_id

    async def refresh_sessions(self) -> dict[str, PipelineStatus]:
        """Refresh session history; failures leave the history as it was."""
        try:
            return await self.poller.list_known_sessions()
        except EngineError as e:
            logger.info("Session list unavailable: %s", e)
            return dict(self.poller.sessions)

    def select(self, session_id: str) -> bool:
        """Show ``session_id``; re-arms polling only if it is still running.

        Returns:
            True if a polling loop was armed
        """
        known = self.poller.snapshot(session_id)
        if known is not None and is_terminal(known.status):
            self.poller.stop()
            self.poller.selected = session_id
            return False
        return self.poller.switch_to(session_id) is not None

    def stop(self) -> None:
        self.poller.stop()
