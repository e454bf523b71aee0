"""Async client for the content-to-video engine HTTP API.

Provides:
- Envelope decoding into typed ``StatusResponse[...]`` models
- Two timeout classes (short for metadata/status/search, long for
  generation-class calls)
- A small exception hierarchy separating transport failures from
  application-level failures

Usage:
    from vidconsole.services.engine_client import get_engine_client

    client = await get_engine_client()
    started = await client.start_pipeline("dinosaurus")
    session_id = started.data.session_id
    snapshot = await client.get_pipeline_status(session_id)
"""

import logging
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from vidconsole.config import settings
from vidconsole.schemas import (
    AppConfig,
    AssetsData,
    AssetSearchResult,
    AssetsStatus,
    EditorPreview,
    HealthData,
    LLMStatus,
    OutputList,
    PipelineStatus,
    RawContent,
    SessionList,
    SessionRef,
    SingleAssetDownload,
    StatusResponse,
    TTSData,
    TTSPreview,
    TTSStatus,
    VideoScript,
    VoiceCatalog,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class EngineError(Exception):
    """Base class for every failure talking to the engine."""


class EngineTransportError(EngineError):
    """Network failure, timeout, non-2xx HTTP status or undecodable body."""


class EngineResponseError(EngineError):
    """Engine answered, but not with a usable ``ok`` envelope."""

    def __init__(self, message: str, status: str = "error"):
        super().__init__(message)
        self.status = status


def _error_detail(response: httpx.Response) -> str:
    """Best-effort message from an error body (envelope or FastAPI detail)."""
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or "")
    return ""


def unwrap(response: StatusResponse[M]) -> M:
    """Return ``response.data`` or raise with the engine's message verbatim."""
    if response.status != "ok" or response.data is None:
        raise EngineResponseError(
            response.message or f"Engine returned status '{response.status}'",
            status=response.status,
        )
    return response.data


# ---------------------------------------------------------------------------
# Engine API client
# ---------------------------------------------------------------------------

class EngineClient:
    """Async client for the engine API.

    Holds two lazily created ``httpx.AsyncClient`` instances that differ
    only in timeout, so a slow render request never shares a timeout with a
    2-second status poll.
    """

    def __init__(
        self,
        base_url: str,
        *,
        short_timeout: float = 30.0,
        long_timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.short_timeout = short_timeout
        self.long_timeout = long_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._long_client: Optional[httpx.AsyncClient] = None

    def _build(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            follow_redirects=True,
            timeout=httpx.Timeout(timeout),
            transport=self._transport,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = self._build(self.short_timeout)
        return self._client

    @property
    def long_client(self) -> httpx.AsyncClient:
        if self._long_client is None or self._long_client.is_closed:
            self._long_client = self._build(self.long_timeout)
        return self._long_client

    async def _request(
        self,
        method: str,
        path: str,
        schema: type[M],
        *,
        long: bool = False,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> StatusResponse[M]:
        """Issue one request and decode the envelope.

        Raises:
            EngineTransportError: On network errors, timeouts, HTTP error
                status codes and non-JSON bodies.
            EngineResponseError: If the body is not a valid envelope for
                ``schema``.
        """
        http = self.long_client if long else self.client
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        logger.debug("%s %s%s params=%s", method, self.base_url, path, params)
        try:
            response = await http.request(method, path, params=params, json=json)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            raise EngineTransportError(f"{method} {path} timed out") from e
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            raise EngineTransportError(
                f"{method} {path} failed: HTTP {e.response.status_code}"
                + (f": {detail}" if detail else "")
            ) from e
        except httpx.HTTPError as e:
            raise EngineTransportError(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            raise EngineTransportError(f"{method} {path} returned a non-JSON body") from e

        logger.debug("  %s %s -> HTTP %d", method, path, response.status_code)
        try:
            envelope = StatusResponse[schema].model_validate(payload)
        except ValidationError as e:
            logger.warning("Malformed response from %s %s: %s", method, path, e)
            raise EngineResponseError(f"Malformed response from {path}") from e

        if envelope.status != "ok":
            logger.info("%s %s -> %s: %s", method, path, envelope.status, envelope.message)
        return envelope

    # === Health & Config ===

    async def get_health(self) -> StatusResponse[HealthData]:
        return await self._request("GET", "/health", HealthData)

    async def get_config(self) -> StatusResponse[AppConfig]:
        return await self._request("GET", "/config", AppConfig)

    # === Scraper ===

    async def mine_content(
        self, topic: str = "random", source: str = "wikipedia"
    ) -> StatusResponse[RawContent]:
        logger.info("Mining content topic=%r source=%s", topic, source)
        return await self._request(
            "POST", "/scraper/mine", RawContent,
            long=True, json={"topic": topic, "source": source},
        )

    async def get_random_wikipedia(self) -> StatusResponse[RawContent]:
        return await self._request("GET", "/scraper/wikipedia/random", RawContent)

    async def search_wikipedia(self, query: str) -> StatusResponse[RawContent]:
        return await self._request(
            "GET", "/scraper/wikipedia/search", RawContent, params={"query": query},
        )

    # === LLM ===

    async def get_llm_status(self) -> StatusResponse[LLMStatus]:
        return await self._request("GET", "/llm/status", LLMStatus)

    async def generate_script(
        self, raw_text: str, title: str = "Untitled"
    ) -> StatusResponse[VideoScript]:
        logger.info("Generating script title=%r (%d chars)", title, len(raw_text))
        return await self._request(
            "POST", "/llm/generate", VideoScript,
            long=True, json={"raw_text": raw_text, "title": title},
        )

    # === TTS ===

    async def get_tts_status(self) -> StatusResponse[TTSStatus]:
        return await self._request("GET", "/tts/status", TTSStatus)

    async def get_voices(self) -> StatusResponse[VoiceCatalog]:
        return await self._request("GET", "/tts/voices", VoiceCatalog)

    async def generate_audio(
        self, texts: list[str], session_id: Optional[str] = None
    ) -> StatusResponse[TTSData]:
        logger.info("Generating audio for %d segments", len(texts))
        return await self._request(
            "POST", "/tts/generate", TTSData,
            long=True, json={"texts": texts, "session_id": session_id},
        )

    async def preview_tts(self, text: str) -> StatusResponse[TTSPreview]:
        return await self._request("POST", "/tts/preview", TTSPreview, params={"text": text})

    # === Assets ===

    async def get_assets_status(self) -> StatusResponse[AssetsStatus]:
        return await self._request("GET", "/assets/status", AssetsStatus)

    async def search_assets(
        self, keyword: str, source: str = "pexels"
    ) -> StatusResponse[AssetSearchResult]:
        return await self._request(
            "GET", "/assets/search", AssetSearchResult,
            params={"keyword": keyword, "source": source},
        )

    async def fetch_assets(
        self, keywords: list[str], session_id: Optional[str] = None
    ) -> StatusResponse[AssetsData]:
        logger.info("Fetching assets for %d keywords", len(keywords))
        return await self._request(
            "POST", "/assets/fetch", AssetsData,
            long=True, json={"keywords": keywords, "session_id": session_id},
        )

    async def download_single_asset(
        self, keyword: str, source: str = "pexels", session_id: Optional[str] = None
    ) -> StatusResponse[SingleAssetDownload]:
        logger.info("Downloading asset keyword=%r source=%s", keyword, source)
        return await self._request(
            "POST", "/assets/download-single", SingleAssetDownload,
            long=True,
            params={"keyword": keyword, "source": source, "session_id": session_id},
        )

    # === Video Editor ===

    async def get_editor_preview(self) -> StatusResponse[EditorPreview]:
        return await self._request("GET", "/editor/preview", EditorPreview)

    async def render_video(
        self,
        script: VideoScript,
        audio_paths: list[str],
        asset_paths: list[str],
        session_id: Optional[str] = None,
    ) -> StatusResponse[SessionRef]:
        logger.info(
            "Rendering %r: %d audio, %d assets",
            script.title, len(audio_paths), len(asset_paths),
        )
        return await self._request(
            "POST", "/editor/render", SessionRef,
            long=True,
            json={
                "script": script.model_dump(mode="json"),
                "audio_paths": audio_paths,
                "asset_paths": asset_paths,
                "session_id": session_id,
            },
        )

    # === Outputs ===

    async def list_outputs(self) -> StatusResponse[OutputList]:
        return await self._request("GET", "/outputs", OutputList)

    # === Pipeline ===

    async def start_pipeline(
        self, topic: str = "random", skip_check: bool = False
    ) -> StatusResponse[SessionRef]:
        logger.info("Starting pipeline topic=%r skip_check=%s", topic, skip_check)
        return await self._request(
            "POST", "/pipeline/start", SessionRef,
            json={"topic": topic, "skip_check": skip_check},
        )

    async def get_pipeline_status(self, session_id: str) -> StatusResponse[PipelineStatus]:
        return await self._request("GET", f"/pipeline/status/{session_id}", PipelineStatus)

    async def list_pipelines(self) -> StatusResponse[SessionList]:
        return await self._request("GET", "/pipeline/list", SessionList)

    async def close(self):
        """Close the underlying HTTP clients."""
        for http in (self._client, self._long_client):
            if http is not None and not http.is_closed:
                await http.aclose()
        self._client = None
        self._long_client = None


# ---------------------------------------------------------------------------
# Module-level lazy singleton
# ---------------------------------------------------------------------------

_engine_client: Optional[EngineClient] = None


async def get_engine_client(base_url: Optional[str] = None) -> EngineClient:
    """Get or create a singleton EngineClient.

    Falls back to ``settings.service`` when base_url is not provided.
    """
    global _engine_client

    resolved_url = (base_url or settings.service.base_url).rstrip("/")

    if _engine_client is not None and _engine_client.base_url != resolved_url:
        # Config changed; close the old pools before replacing
        logger.info("Engine base URL changed to %s", resolved_url)
        await _engine_client.close()
        _engine_client = None

    if _engine_client is None:
        _engine_client = EngineClient(
            resolved_url,
            short_timeout=settings.service.short_timeout,
            long_timeout=settings.service.long_timeout,
        )

    return _engine_client


async def close_engine_client() -> None:
    """Close the singleton EngineClient (for app shutdown)."""
    global _engine_client
    if _engine_client is not None:
        await _engine_client.close()
        _engine_client = None
