"""Tests for the manual-mode call sites."""

import pytest

from conftest import fail, make_assets, make_audio, make_content, make_download, make_script, ok
from vidconsole.orchestrator.assets import AssetStatus
from vidconsole.orchestrator.manual import ManualWorkflow
from vidconsole.orchestrator.state import ArtifactKind, Stage
from vidconsole.orchestrator.workflow import WorkflowController
from vidconsole.schemas import SessionRef, TTSPreview
from vidconsole.services.engine_client import EngineTransportError


def _flow(engine, auto_advance=True) -> ManualWorkflow:
    return ManualWorkflow(engine, WorkflowController(auto_advance=auto_advance, advance_delay=0))


@pytest.mark.asyncio
async def test_mine_stores_content(engine):
    engine.queue("mine_content", ok(make_content("Komodo")))
    flow = _flow(engine)

    content = await flow.mine("")

    assert content.title == "Komodo"
    assert flow.content is content
    assert engine.calls_to("mine_content") == [(("random", "wikipedia"), {})]
    assert flow.error is None


@pytest.mark.asyncio
async def test_failed_request_is_recorded_not_raised(engine):
    engine.queue("mine_content", EngineTransportError("POST /scraper/mine timed out"))
    flow = _flow(engine)

    assert await flow.mine("Komodo") is None
    assert flow.error == "Mining failed: POST /scraper/mine timed out"
    assert flow.content is None


@pytest.mark.asyncio
async def test_search_requires_a_query(engine):
    flow = _flow(engine)
    assert await flow.search_wikipedia("  ") is None
    assert flow.error
    assert engine.calls == []


@pytest.mark.asyncio
async def test_generate_script_uses_content_and_advances(engine):
    engine.queue("get_random_wikipedia", ok(make_content("Borobudur")))
    engine.queue("generate_script", ok(make_script("temple", "jungle")))
    flow = _flow(engine)

    await flow.random_wikipedia()
    script = await flow.generate_script()

    (args, _), = engine.calls_to("generate_script")
    assert args == (flow.content.body, "Borobudur")
    assert flow.script is script
    assert flow.controller.stage == Stage.NARRATION
    assert flow.tracker.keywords == ["temple", "jungle"]


@pytest.mark.asyncio
async def test_generate_script_without_text_is_refused(engine):
    flow = _flow(engine)
    assert await flow.generate_script() is None
    assert flow.error == "No text to generate a script from"


@pytest.mark.asyncio
async def test_engine_error_message_is_shown_verbatim(engine):
    engine.queue("generate_script", fail("Ollama is not running"))
    flow = _flow(engine)

    assert await flow.generate_script("Some text", "Title") is None
    assert flow.error == "Script generation failed: Ollama is not running"
    assert flow.controller.stage == Stage.MINING


@pytest.mark.asyncio
async def test_audio_then_assets_reach_render(engine):
    engine.queue("generate_script", ok(make_script("temple", "jungle")))
    engine.queue("generate_audio", ok(make_audio(2)))
    engine.queue("fetch_assets", ok(make_assets("temple", "jungle")))
    flow = _flow(engine)

    await flow.generate_script("text", "Title")
    await flow.generate_audio()
    assert flow.controller.stage == Stage.ASSETS
    assert engine.calls_to("generate_audio") == [
        ((["Narration about temple.", "Narration about jungle."],), {}),
    ]

    await flow.fetch_assets()
    assert flow.controller.stage == Stage.RENDER


@pytest.mark.asyncio
async def test_per_keyword_downloads_reach_render(engine):
    engine.queue("generate_script", ok(make_script("temple")))
    engine.queue("download_single_asset", ok(make_download("temple")))
    engine.queue("generate_audio", ok(make_audio(1)))
    flow = _flow(engine)

    await flow.generate_script("text", "Title")
    await flow.download_asset("temple")
    assert flow.tracker.status("temple") == AssetStatus.DOWNLOADED
    await flow.generate_audio()

    assert flow.controller.stage == Stage.RENDER


@pytest.mark.asyncio
async def test_download_failure_is_recorded(engine):
    engine.queue("download_single_asset", fail("Pexels quota exceeded"))
    flow = _flow(engine)
    flow.tracker.load_keywords(["temple"])

    outcome = await flow.download_asset("temple")

    assert outcome.result is None
    assert outcome.error == "Download of 'temple' failed: Pexels quota exceeded"
    assert flow.error == outcome.error
    assert flow.tracker.status("temple") == AssetStatus.IDLE


@pytest.mark.asyncio
async def test_rejected_preview_does_not_report_another_keywords_failure(engine):
    engine.queue("search_assets", EngineTransportError("ocean search timed out"))
    engine.queue("download_single_asset", ok(make_download("space")))
    flow = _flow(engine)
    flow.tracker.load_keywords(["ocean", "space"])

    failed = await flow.preview_asset("ocean")
    assert (await flow.download_asset("space")).ok
    rejected = await flow.preview_asset("space")

    assert failed.error == "Preview for 'ocean' failed: ocean search timed out"
    assert rejected.rejected
    assert rejected.error is None
    assert len(engine.calls_to("search_assets")) == 1


@pytest.mark.asyncio
async def test_segment_edit_supersedes_downstream_without_moving(engine):
    flow = _flow(engine)
    flow.controller.set_artifact(ArtifactKind.SCRIPT, make_script("temple", "jungle"), auto_advance=False)
    flow.controller.set_artifact(ArtifactKind.AUDIO, make_audio(2), auto_advance=False)
    flow.controller.go_to(Stage.ASSETS)
    original = flow.script

    updated = flow.update_segment(1, visual_keyword="rainforest")

    assert updated.segments[1].visual_keyword == "rainforest"
    assert original.segments[1].visual_keyword == "jungle"
    assert flow.audio is None
    assert flow.controller.stage == Stage.ASSETS
    assert flow.tracker.keywords == ["temple", "rainforest"]


def test_segment_edit_rejects_bad_index(engine):
    flow = _flow(engine)
    flow.controller.set_artifact(ArtifactKind.SCRIPT, make_script("temple"))
    assert flow.update_segment(3, text="x") is None
    assert flow.error == "Segment 3 does not exist"


@pytest.mark.asyncio
async def test_voice_preview_does_not_touch_artifacts(engine):
    engine.queue("preview_tts", ok(TTSPreview(file_path="/tmp/preview.mp3", duration=2)))
    flow = _flow(engine)

    preview = await flow.preview_voice("Halo dunia")

    assert preview.file_path == "/tmp/preview.mp3"
    assert flow.audio is None


@pytest.mark.asyncio
async def test_render_submits_sorted_audio_and_available_assets(engine):
    engine.queue("render_video", ok(SessionRef(session_id="render-1")))
    flow = _flow(engine, auto_advance=False)
    script = make_script("temple", "jungle", "sunrise")
    flow.controller.set_artifact(ArtifactKind.SCRIPT, script)
    flow.controller.set_artifact(ArtifactKind.AUDIO, make_audio(3))
    flow.controller.set_artifact(ArtifactKind.ASSETS, make_assets("temple", None, "sunrise"))

    session_id = await flow.render()

    assert session_id == "render-1"
    (args, _), = engine.calls_to("render_video")
    assert args == (
        script,
        ["/audio/0.mp3", "/audio/1.mp3", "/audio/2.mp3"],
        ["/assets/temple.mp4", "/assets/sunrise.mp4"],
        None,
    )


@pytest.mark.asyncio
async def test_render_requires_every_artifact(engine):
    flow = _flow(engine)
    flow.controller.set_artifact(ArtifactKind.SCRIPT, make_script())
    assert await flow.render() is None
    assert engine.calls == []
