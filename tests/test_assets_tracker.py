"""Tests for the per-keyword asset task tracker."""

import asyncio

import pytest

from conftest import fail, gated, make_assets, make_download, make_script, ok, wait_until
from vidconsole.orchestrator.assets import AssetStatus, AssetTaskTracker
from vidconsole.orchestrator.state import ArtifactKind
from vidconsole.orchestrator.workflow import WorkflowController
from vidconsole.schemas import AssetPreview, AssetSearchResult
from vidconsole.services.engine_client import EngineResponseError, EngineTransportError


def _tracker(engine, keywords=("ocean", "city", "forest"), **kwargs):
    controller = WorkflowController(auto_advance=False, advance_delay=0)
    controller.set_artifact(ArtifactKind.SCRIPT, make_script(*keywords))
    kwargs.setdefault("default_source", "pexels")
    kwargs.setdefault("max_concurrency", None)
    tracker = AssetTaskTracker(engine, controller, **kwargs)
    tracker.load_keywords(keywords)
    return tracker, controller


def _search_result(keyword: str, title: str = "clip") -> AssetSearchResult:
    return AssetSearchResult(
        keyword=keyword, source="pexels", preview=AssetPreview(title=title, duration=12),
    )


def test_load_keywords_starts_every_item_idle(engine):
    tracker, _ = _tracker(engine, keywords=("ocean", "city", "ocean", " "))
    assert tracker.keywords == ["ocean", "city", "ocean"]
    assert list(tracker.items) == ["ocean", "city"]
    assert all(item.status == AssetStatus.IDLE for item in tracker.items.values())
    assert all(item.source == "pexels" for item in tracker.items.values())


@pytest.mark.asyncio
async def test_preview_stores_result_and_returns_to_idle(engine):
    engine.queue("search_assets", ok(_search_result("ocean", "Waves")))
    tracker, _ = _tracker(engine)

    preview = await tracker.preview("ocean", "pixabay")

    assert preview.title == "Waves"
    item = tracker.item("ocean")
    assert item.status == AssetStatus.IDLE
    assert item.source == "pixabay"
    assert item.preview.title == "Waves"
    assert engine.calls_to("search_assets") == [(("ocean", "pixabay"), {})]


@pytest.mark.asyncio
async def test_preview_failure_reverts_to_idle_with_error(engine):
    engine.queue("search_assets", EngineTransportError("GET /assets/search timed out"))
    tracker, _ = _tracker(engine)

    assert await tracker.preview("ocean") is None
    assert tracker.status("ocean") == AssetStatus.IDLE
    assert "timed out" in tracker.error


@pytest.mark.asyncio
async def test_preview_outcome_carries_only_its_own_keyword(engine):
    engine.queue(
        "search_assets",
        EngineTransportError("ocean search timed out"),
        ok(_search_result("city", "Skyline")),
    )
    engine.queue("download_single_asset", ok(make_download("forest")))
    tracker, _ = _tracker(engine)
    await tracker.download("forest")

    failed = await tracker.preview_outcome("ocean")
    rejected = await tracker.preview_outcome("forest")
    found = await tracker.preview_outcome("city")

    assert failed.error == "Preview for 'ocean' failed: ocean search timed out"
    assert not failed.ok
    assert rejected.rejected and rejected.error is None
    assert found.ok and found.result.title == "Skyline"
    # The tracker-level error stays the most recent failure
    assert tracker.error == failed.error


@pytest.mark.asyncio
async def test_other_keyword_success_does_not_clear_error(engine):
    release = asyncio.Event()
    engine.queue(
        "download_single_asset",
        EngineTransportError("city timed out"),
        gated(release, ok(make_download("ocean"))),
    )
    tracker, _ = _tracker(engine)

    with pytest.raises(EngineTransportError):
        await tracker.download("city")
    ocean = asyncio.create_task(tracker.download("ocean"))
    await wait_until(lambda: len(engine.calls) == 2)
    assert tracker.error == "Download for 'city' failed: city timed out"
    release.set()
    await ocean

    assert tracker.status("ocean") == AssetStatus.DOWNLOADED
    assert tracker.status("city") == AssetStatus.IDLE
    assert tracker.error == "Download for 'city' failed: city timed out"


@pytest.mark.asyncio
async def test_download_marks_item_permanently_downloaded(engine):
    engine.queue("download_single_asset", ok(make_download("ocean")))
    tracker, controller = _tracker(engine)

    asset = await tracker.download("ocean")

    assert asset.file_path == "/assets/ocean.mp4"
    assert asset.orientation == "landscape"
    assert tracker.status("ocean") == AssetStatus.DOWNLOADED

    # Further preview, download and source changes are all no-ops
    assert await tracker.preview("ocean") is None
    assert await tracker.download("ocean") is None
    assert tracker.select_source("ocean", "youtube") is False
    assert tracker.item("ocean").source == "pexels"
    assert len(engine.calls) == 1


@pytest.mark.asyncio
async def test_download_failure_reverts_and_raises(engine):
    engine.queue("download_single_asset", fail("No footage found for 'ocean'"))
    tracker, controller = _tracker(engine)

    with pytest.raises(EngineResponseError, match="No footage found"):
        await tracker.download("ocean")

    assert tracker.status("ocean") == AssetStatus.IDLE
    assert controller.artifact(ArtifactKind.ASSETS) is None

    # Retry is allowed after a failure
    engine.queue("download_single_asset", ok(make_download("ocean")))
    assert await tracker.download("ocean") is not None


@pytest.mark.asyncio
async def test_keywords_do_not_block_each_other(engine):
    release_ocean = asyncio.Event()
    engine.queue(
        "download_single_asset",
        gated(release_ocean, ok(make_download("ocean"))),
        ok(make_download("city")),
    )
    engine.queue("search_assets", ok(_search_result("forest")))
    tracker, _ = _tracker(engine)

    ocean = asyncio.create_task(tracker.download("ocean"))
    await wait_until(lambda: len(engine.calls) == 1)
    assert tracker.status("ocean") == AssetStatus.DOWNLOADING

    await tracker.download("city")
    await tracker.preview("forest")
    assert tracker.status("city") == AssetStatus.DOWNLOADED
    assert tracker.item("forest").preview is not None
    assert tracker.status("ocean") == AssetStatus.DOWNLOADING

    release_ocean.set()
    await ocean
    assert tracker.status("ocean") == AssetStatus.DOWNLOADED


@pytest.mark.asyncio
async def test_duplicate_requests_for_one_keyword_are_rejected(engine):
    release = asyncio.Event()
    engine.queue("download_single_asset", gated(release, ok(make_download("ocean"))))
    engine.queue("search_assets", gated(release, ok(_search_result("city"))))
    tracker, _ = _tracker(engine)

    download = asyncio.create_task(tracker.download("ocean"))
    search = asyncio.create_task(tracker.preview("city"))
    await wait_until(lambda: len(engine.calls) == 2)

    assert await tracker.download("ocean") is None
    assert await tracker.preview("city") is None
    assert tracker.in_flight() == {"searching": ["city"], "downloading": ["ocean"]}

    release.set()
    await asyncio.gather(download, search)
    assert len(engine.calls) == 2


@pytest.mark.asyncio
async def test_preview_settling_during_download_keeps_downloading_status(engine):
    release_download = asyncio.Event()
    engine.queue("download_single_asset", gated(release_download, ok(make_download("ocean"))))
    engine.queue("search_assets", ok(_search_result("ocean")))
    tracker, _ = _tracker(engine)

    download = asyncio.create_task(tracker.download("ocean"))
    await wait_until(lambda: len(engine.calls) == 1)
    await tracker.preview("ocean")
    assert tracker.status("ocean") == AssetStatus.DOWNLOADING

    release_download.set()
    await download
    assert tracker.status("ocean") == AssetStatus.DOWNLOADED


@pytest.mark.asyncio
async def test_single_downloads_accumulate_into_assets_artifact(engine):
    engine.queue("download_single_asset", ok(make_download("city")), ok(make_download("ocean", "pixabay")))
    tracker, controller = _tracker(engine, session_id="s9")

    await tracker.download("city")
    await tracker.download("ocean", "pixabay")

    data = controller.artifact(ArtifactKind.ASSETS)
    assert data.session_id == "s9"
    assert [a.keyword for a in data.assets] == ["city", "ocean"]
    assert data.assets[1].source == "pixabay"
    assert [a.keyword for a in tracker.downloaded_assets] == ["city", "ocean"]


@pytest.mark.asyncio
async def test_batch_fetch_keeps_positional_gaps(engine):
    keywords = ("ocean", "city", "forest", "desert")
    engine.queue("fetch_assets", ok(make_assets("ocean", "city", None, "desert")))
    tracker, controller = _tracker(engine, keywords=keywords)

    data = await tracker.download_all()

    assert engine.calls_to("fetch_assets") == [((list(keywords), None), {})]
    assert len(data.assets) == 4
    assert data.assets[2] is None
    assert data.failed_positions() == [2]
    assert data.asset_paths() == ["/assets/ocean.mp4", "/assets/city.mp4", "/assets/desert.mp4"]
    assert controller.artifact(ArtifactKind.ASSETS) is data
    # Batch results do not touch per-keyword state
    assert all(item.status == AssetStatus.IDLE for item in tracker.items.values())


@pytest.mark.asyncio
async def test_batch_fetch_overwrites_single_downloads(engine):
    engine.queue("download_single_asset", ok(make_download("ocean")))
    engine.queue("fetch_assets", ok(make_assets("city")))
    tracker, controller = _tracker(engine)

    await tracker.download("ocean")
    await tracker.download_all(["city"])

    assert [a.keyword for a in controller.artifact(ArtifactKind.ASSETS).assets] == ["city"]


@pytest.mark.asyncio
async def test_batch_fetch_without_keywords_is_rejected(engine):
    tracker, _ = _tracker(engine, keywords=())
    with pytest.raises(ValueError):
        await tracker.download_all()
    assert engine.calls == []


@pytest.mark.asyncio
async def test_reloading_keywords_discards_stale_download(engine):
    release = asyncio.Event()
    engine.queue("download_single_asset", gated(release, ok(make_download("ocean"))))
    tracker, controller = _tracker(engine)

    download = asyncio.create_task(tracker.download("ocean"))
    await wait_until(lambda: len(engine.calls) == 1)
    tracker.load_keywords(["ocean", "river"])
    release.set()
    await download

    assert tracker.status("ocean") == AssetStatus.IDLE
    assert tracker.downloaded_assets == []
    assert controller.artifact(ArtifactKind.ASSETS) is None


@pytest.mark.asyncio
async def test_concurrency_limit_bounds_in_flight_requests(engine):
    active = 0
    peak = 0

    async def respond(keyword, source, session_id):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return ok(make_download(keyword))

    keywords = ("a", "b", "c", "d")
    engine.queue("download_single_asset", *[respond] * len(keywords))
    tracker, _ = _tracker(engine, keywords=keywords, max_concurrency=2)

    await asyncio.gather(*(tracker.download(k) for k in keywords))

    assert peak == 2
    assert all(tracker.status(k) == AssetStatus.DOWNLOADED for k in keywords)


def test_snapshot_is_plain_data(engine):
    tracker, _ = _tracker(engine, keywords=("ocean",))
    tracker.select_source("ocean", "nasa")
    view = tracker.snapshot()
    assert view["items"] == [
        {"keyword": "ocean", "source": "nasa", "status": "idle", "preview": None, "asset": None},
    ]
    assert view["downloaded"] == []
