"""Shared fixtures: a scripted in-memory engine and payload builders."""

import asyncio
import inspect
from collections import defaultdict, deque
from typing import Any, Callable, Optional

import pytest

from vidconsole.schemas import (
    AssetsData,
    AudioSegment,
    DownloadedAsset,
    PipelineStatus,
    RawContent,
    Segment,
    SingleAssetDownload,
    StatusResponse,
    TTSData,
    VideoAsset,
    VideoScript,
)

ENGINE_METHODS = {
    "get_health",
    "get_config",
    "mine_content",
    "get_random_wikipedia",
    "search_wikipedia",
    "get_llm_status",
    "generate_script",
    "get_tts_status",
    "get_voices",
    "generate_audio",
    "preview_tts",
    "get_assets_status",
    "search_assets",
    "fetch_assets",
    "download_single_asset",
    "get_editor_preview",
    "render_video",
    "list_outputs",
    "start_pipeline",
    "get_pipeline_status",
    "list_pipelines",
}


class FakeEngineClient:
    """Engine stand-in answering each method from a queue of scripted results.

    A queued item is returned as-is, raised if it is an exception, or called
    with the request arguments (and awaited if async) to produce the result.
    """

    def __init__(self, base_url: str = "http://engine.test/api"):
        self.base_url = base_url
        self.calls: list[tuple[str, tuple, dict]] = []
        self.closed = False
        self._scripts: dict[str, deque] = defaultdict(deque)

    def queue(self, method: str, *results: Any) -> "FakeEngineClient":
        assert method in ENGINE_METHODS, method
        self._scripts[method].extend(results)
        return self

    def calls_to(self, method: str) -> list[tuple[tuple, dict]]:
        return [(args, kwargs) for name, args, kwargs in self.calls if name == method]

    async def _call(self, method: str, *args, **kwargs):
        self.calls.append((method, args, kwargs))
        script = self._scripts[method]
        if not script:
            raise AssertionError(f"Unexpected call to {method}{args}")
        result = script.popleft()
        if isinstance(result, BaseException):
            raise result
        if callable(result):
            result = result(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        return result

    def __getattr__(self, name: str):
        if name in ENGINE_METHODS:
            async def method(*args, **kwargs):
                return await self._call(name, *args, **kwargs)
            return method
        raise AttributeError(name)

    async def close(self):
        self.closed = True


@pytest.fixture
def engine() -> FakeEngineClient:
    return FakeEngineClient()


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def ok(data: Any, message: str = "") -> StatusResponse:
    return StatusResponse(status="ok", message=message, data=data)


def fail(message: str, status: str = "error") -> StatusResponse:
    return StatusResponse(status=status, message=message, data=None)


def snapshot(status: str = "running", phase: str = "initializing", progress: int = 0, **extra) -> PipelineStatus:
    return PipelineStatus(status=status, phase=phase, progress=progress, **extra)


def make_content(title: str = "Borobudur") -> RawContent:
    return RawContent(title=title, body=f"{title} is a ninth-century temple in Central Java.", source="wikipedia")


def make_script(*keywords: str, title: str = "Borobudur") -> VideoScript:
    keywords = keywords or ("temple", "jungle", "sunrise")
    return VideoScript(
        title=title,
        segments=[
            Segment(text=f"Narration about {kw}.", visual_keyword=kw, duration_estimate=5)
            for kw in keywords
        ],
    )


def make_audio(count: int = 3) -> TTSData:
    # Deliberately out of order to exercise index sorting
    return TTSData(
        session_id="s1",
        segments=[
            AudioSegment(index=i, text=f"line {i}", file_path=f"/audio/{i}.mp3", duration=4)
            for i in reversed(range(count))
        ],
    )


def make_asset(keyword: str, source: str = "pexels") -> VideoAsset:
    return VideoAsset(keyword=keyword, file_path=f"/assets/{keyword}.mp4", source=source, duration=8)


def make_assets(*keywords: Optional[str]) -> AssetsData:
    return AssetsData(
        session_id="s1",
        assets=[make_asset(kw) if kw else None for kw in keywords],
    )


def make_download(keyword: str, source: str = "pexels") -> SingleAssetDownload:
    return SingleAssetDownload(
        keyword=keyword,
        source=source,
        asset=DownloadedAsset(path=f"/assets/{keyword}.mp4", source=source, duration=8),
    )


def gated(event: asyncio.Event, result: Any) -> Callable:
    """Queue item that holds its request open until ``event`` is set."""
    async def respond(*args, **kwargs):
        await event.wait()
        if isinstance(result, BaseException):
            raise result
        return result
    return respond


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""
    async def spin():
        while not predicate():
            await asyncio.sleep(0.001)
    await asyncio.wait_for(spin(), timeout)
