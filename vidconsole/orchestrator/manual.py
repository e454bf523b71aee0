"""Manual-mode call sites.

Each operation issues one engine request and, on success, writes the
resulting artifact into the workflow controller, which re-evaluates the
gates and may auto-advance. Failures never propagate past this layer: they
are logged and turned into ``error`` so the invoking view can show them and
the operator can retry.
"""

import logging
from typing import Optional

from vidconsole.orchestrator.assets import AssetTaskTracker, KeywordOutcome
from vidconsole.orchestrator.state import ArtifactKind
from vidconsole.orchestrator.workflow import WorkflowController
from vidconsole.schemas import (
    AssetsData,
    RawContent,
    TTSData,
    TTSPreview,
    VideoScript,
)
from vidconsole.services.engine_client import EngineClient, EngineError, unwrap

logger = logging.getLogger(__name__)


class ManualWorkflow:
    """Drives the five manual stages against one engine client."""

    def __init__(
        self,
        client: EngineClient,
        controller: Optional[WorkflowController] = None,
        tracker: Optional[AssetTaskTracker] = None,
    ):
        self.client = client
        self.controller = controller or WorkflowController()
        self.tracker = tracker or AssetTaskTracker(client, self.controller)
        if self.tracker.controller is None:
            self.tracker.controller = self.controller
        self.error: Optional[str] = None

    # --- artifacts ---------------------------------------------------------

    @property
    def content(self) -> Optional[RawContent]:
        return self.controller.artifact(ArtifactKind.CONTENT)

    @property
    def script(self) -> Optional[VideoScript]:
        return self.controller.artifact(ArtifactKind.SCRIPT)

    @property
    def audio(self) -> Optional[TTSData]:
        return self.controller.artifact(ArtifactKind.AUDIO)

    @property
    def assets(self) -> Optional[AssetsData]:
        return self.controller.artifact(ArtifactKind.ASSETS)

    def _fail(self, message: str) -> None:
        self.error = message
        logger.warning(message)

    # --- stage 1: mining ---------------------------------------------------

    async def mine(self, topic: str = "random", source: str = "wikipedia") -> Optional[RawContent]:
        self.error = None
        try:
            content = unwrap(await self.client.mine_content(topic or "random", source))
        except EngineError as e:
            self._fail(f"Mining failed: {e}")
            return None
        self.controller.set_artifact(ArtifactKind.CONTENT, content)
        return content

    async def random_wikipedia(self) -> Optional[RawContent]:
        self.error = None
        try:
            content = unwrap(await self.client.get_random_wikipedia())
        except EngineError as e:
            self._fail(f"Fetching a random article failed: {e}")
            return None
        self.controller.set_artifact(ArtifactKind.CONTENT, content)
        return content

    async def search_wikipedia(self, query: str) -> Optional[RawContent]:
        self.error = None
        if not query.strip():
            self._fail("Enter a topic to search for")
            return None
        try:
            content = unwrap(await self.client.search_wikipedia(query))
        except EngineError as e:
            self._fail(f"Wikipedia search failed: {e}")
            return None
        self.controller.set_artifact(ArtifactKind.CONTENT, content)
        return content

    # --- stage 2: scripting ------------------------------------------------

    async def generate_script(
        self, raw_text: Optional[str] = None, title: Optional[str] = None
    ) -> Optional[VideoScript]:
        """Generate a script from ``raw_text`` or the mined content.

        A new script supersedes audio and assets made for the previous one,
        and resets the per-keyword asset tracker to the new keywords.
        """
        self.error = None
        content = self.content
        text = raw_text if raw_text is not None else (content.body if content else "")
        if not text.strip():
            self._fail("No text to generate a script from")
            return None
        if title is None:
            title = content.title if content else "Untitled"

        try:
            script = unwrap(await self.client.generate_script(text, title or "Untitled"))
        except EngineError as e:
            self._fail(f"Script generation failed: {e}")
            return None
        self.tracker.load_script(script)
        self.controller.set_artifact(ArtifactKind.SCRIPT, script)
        return script

    def update_segment(
        self,
        index: int,
        *,
        text: Optional[str] = None,
        visual_keyword: Optional[str] = None,
        duration_estimate: Optional[float] = None,
    ) -> Optional[VideoScript]:
        """Edit one segment of the current script.

        The edit produces a new script value (the stored one is never
        mutated), superseding audio and assets without moving the stage.
        """
        self.error = None
        script = self.script
        if script is None:
            self._fail("No script to edit")
            return None
        if not 0 <= index < len(script.segments):
            self._fail(f"Segment {index} does not exist")
            return None

        changes = {
            name: value
            for name, value in (
                ("text", text),
                ("visual_keyword", visual_keyword),
                ("duration_estimate", duration_estimate),
            )
            if value is not None
        }
        segments = list(script.segments)
        segments[index] = segments[index].model_copy(update=changes)
        updated = script.model_copy(update={"segments": segments})
        self.tracker.load_script(updated)
        self.controller.set_artifact(ArtifactKind.SCRIPT, updated, auto_advance=False)
        return updated

    # --- stage 3: narration ------------------------------------------------

    async def generate_audio(self, texts: Optional[list[str]] = None) -> Optional[TTSData]:
        self.error = None
        if texts is None:
            texts = self.script.narration_texts() if self.script else []
        if not texts:
            self._fail("No text to synthesize")
            return None
        try:
            audio = unwrap(await self.client.generate_audio(texts))
        except EngineError as e:
            self._fail(f"Audio generation failed: {e}")
            return None
        self.controller.set_artifact(ArtifactKind.AUDIO, audio)
        return audio

    async def preview_voice(self, text: str) -> Optional[TTSPreview]:
        self.error = None
        if not text.strip():
            self._fail("Enter text to preview")
            return None
        try:
            return unwrap(await self.client.preview_tts(text))
        except EngineError as e:
            self._fail(f"Voice preview failed: {e}")
            return None

    # --- stage 4: assets ---------------------------------------------------

    # Keyword operations return their own outcome. ``error`` takes their
    # failures but is never cleared by them.

    async def preview_asset(self, keyword: str, source: Optional[str] = None) -> KeywordOutcome:
        outcome = await self.tracker.preview_outcome(keyword, source)
        if outcome.error:
            self.error = outcome.error
        return outcome

    async def download_asset(self, keyword: str, source: Optional[str] = None) -> KeywordOutcome:
        try:
            asset = await self.tracker.download(keyword, source)
        except EngineError as e:
            message = f"Download of '{keyword}' failed: {e}"
            self._fail(message)
            return KeywordOutcome(keyword, error=message)
        return KeywordOutcome(keyword, result=asset, rejected=asset is None)

    async def fetch_assets(self, keywords: Optional[list[str]] = None) -> Optional[AssetsData]:
        self.error = None
        if keywords is None and not self.tracker.keywords and self.script is not None:
            self.tracker.load_script(self.script)
        try:
            return await self.tracker.download_all(keywords)
        except ValueError as e:
            self._fail(str(e))
            return None
        except EngineError as e:
            self._fail(f"Fetching assets failed: {e}")
            return None

    # --- stage 5: render ---------------------------------------------------

    async def render(self, session_id: Optional[str] = None) -> Optional[str]:
        """Submit script, audio paths and asset paths as one render job.

        Returns:
            The render job's session identifier, or None on failure
        """
        self.error = None
        script, audio, assets = self.script, self.audio, self.assets
        if script is None or audio is None or assets is None:
            self._fail("Script, audio and assets are all required to render")
            return None
        try:
            ref = unwrap(await self.client.render_video(
                script, audio.audio_paths(), assets.asset_paths(), session_id,
            ))
        except EngineError as e:
            self._fail(f"Render failed: {e}")
            return None
        logger.info("Render job %s submitted for %r", ref.session_id, script.title)
        return ref.session_id
