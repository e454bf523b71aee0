"""API route handlers and Pydantic request schemas.

Every response uses the engine's ``{status, message, data}`` envelope so a
browser view can treat the console and the engine alike. Engine failures
become ``status="error"`` envelopes with HTTP 200; only malformed requests
produce HTTP error codes.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from vidconsole.orchestrator import ManualWorkflow, QuickStart, Stage
from vidconsole.orchestrator.state import STAGES, classify_phase
from vidconsole.services.engine_client import EngineClient, EngineError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class MineRequest(BaseModel):
    topic: str = "random"
    source: str = "wikipedia"


class SearchRequest(BaseModel):
    query: str


class ScriptRequest(BaseModel):
    raw_text: Optional[str] = None
    title: Optional[str] = None


class SegmentUpdate(BaseModel):
    text: Optional[str] = None
    visual_keyword: Optional[str] = None
    duration_estimate: Optional[float] = Field(default=None, gt=0)


class AudioRequest(BaseModel):
    texts: Optional[list[str]] = None


class VoicePreviewRequest(BaseModel):
    text: str


class FetchAssetsRequest(BaseModel):
    keywords: Optional[list[str]] = None


class RenderRequest(BaseModel):
    session_id: Optional[str] = None


class SourceRequest(BaseModel):
    source: str


class KeywordRequest(BaseModel):
    source: Optional[str] = None


class StartRequest(BaseModel):
    topic: str = ""
    skip_check: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def envelope(data: Any = None, message: str = "", status: str = "ok") -> dict:
    """Wrap ``data`` in the response envelope."""
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    return {"status": status, "message": message, "data": data}


def error(message: str, data: Any = None) -> dict:
    return envelope(data, message, status="error")


def _client(request: Request) -> EngineClient:
    return request.app.state.client


def _manual(request: Request) -> ManualWorkflow:
    return request.app.state.manual


def _quick(request: Request) -> QuickStart:
    return request.app.state.quick


def _workflow_view(manual: ManualWorkflow) -> dict:
    view = manual.controller.snapshot()
    view["assets"] = manual.tracker.snapshot()
    view["error"] = manual.error
    return view


def _manual_result(manual: ManualWorkflow, result: Any, message: str) -> dict:
    if result is None:
        return error(manual.error or "Operation failed", _workflow_view(manual))
    return envelope(
        {"result": envelope(result)["data"], "workflow": _workflow_view(manual)},
        message,
    )


async def _pass_through(call) -> dict:
    try:
        response = await call
    except EngineError as e:
        return error(str(e))
    return envelope(response.data, response.message, response.status)


# ---------------------------------------------------------------------------
# Engine pass-through
# ---------------------------------------------------------------------------

@router.get("/health")
async def health(request: Request):
    """Engine health, plus the console's own readiness summary."""
    try:
        response = await _client(request).get_health()
    except EngineError as e:
        return error(f"Engine unreachable: {e}")
    if response.data is None:
        return envelope(None, response.message, response.status)
    data = response.data.model_dump(mode="json")
    data["required_ready"] = response.data.required_ready
    data["assets_ready"] = response.data.assets_ready
    return envelope(data, response.message, response.status)


@router.get("/config")
async def engine_config(request: Request):
    return await _pass_through(_client(request).get_config())


@router.get("/outputs")
async def outputs(request: Request):
    return await _pass_through(_client(request).list_outputs())


@router.get("/voices")
async def voices(request: Request):
    return await _pass_through(_client(request).get_voices())


# ---------------------------------------------------------------------------
# Manual workflow: stepper
# ---------------------------------------------------------------------------

@router.get("/workflow")
async def workflow(request: Request):
    return envelope(_workflow_view(_manual(request)))


@router.post("/workflow/goto/{stage}")
async def go_to_stage(stage: int, request: Request):
    manual = _manual(request)
    if stage not in STAGES:
        raise HTTPException(status_code=422, detail=f"Stage must be 1-5, got {stage}")
    if not manual.controller.go_to(stage):
        return error(f"Stage {stage} ({STAGES[Stage(stage)].name}) is not reachable yet",
                     _workflow_view(manual))
    return envelope(_workflow_view(manual))


@router.post("/workflow/advance")
async def advance(request: Request):
    manual = _manual(request)
    if not manual.controller.advance():
        return error("Cannot advance past a closed gate", _workflow_view(manual))
    return envelope(_workflow_view(manual))


@router.post("/workflow/retreat")
async def retreat(request: Request):
    manual = _manual(request)
    if not manual.controller.retreat():
        return error("Cannot go back from here", _workflow_view(manual))
    return envelope(_workflow_view(manual))


@router.post("/workflow/reset")
async def reset(request: Request):
    manual = _manual(request)
    manual.controller.reset()
    manual.tracker.load_keywords([])
    manual.error = None
    return envelope(_workflow_view(manual), "Workflow reset")


# ---------------------------------------------------------------------------
# Manual workflow: stage operations
# ---------------------------------------------------------------------------

@router.post("/manual/mine")
async def mine(body: MineRequest, request: Request):
    manual = _manual(request)
    content = await manual.mine(body.topic, body.source)
    return _manual_result(manual, content, "Content mined")


@router.post("/manual/random")
async def random_article(request: Request):
    manual = _manual(request)
    content = await manual.random_wikipedia()
    return _manual_result(manual, content, "Random article fetched")


@router.post("/manual/search")
async def search_article(body: SearchRequest, request: Request):
    manual = _manual(request)
    content = await manual.search_wikipedia(body.query)
    return _manual_result(manual, content, "Article found")


@router.post("/manual/script")
async def generate_script(body: ScriptRequest, request: Request):
    manual = _manual(request)
    script = await manual.generate_script(body.raw_text, body.title)
    return _manual_result(manual, script, "Script generated")


@router.patch("/manual/script/segments/{index}")
async def update_segment(index: int, body: SegmentUpdate, request: Request):
    manual = _manual(request)
    script = manual.update_segment(
        index,
        text=body.text,
        visual_keyword=body.visual_keyword,
        duration_estimate=body.duration_estimate,
    )
    return _manual_result(manual, script, f"Segment {index} updated")


@router.post("/manual/audio")
async def generate_audio(body: AudioRequest, request: Request):
    manual = _manual(request)
    audio = await manual.generate_audio(body.texts)
    return _manual_result(manual, audio, "Audio generated")


@router.post("/manual/voice-preview")
async def voice_preview(body: VoicePreviewRequest, request: Request):
    manual = _manual(request)
    preview = await manual.preview_voice(body.text)
    return _manual_result(manual, preview, "Preview ready")


@router.post("/manual/assets/fetch")
async def fetch_assets(body: FetchAssetsRequest, request: Request):
    manual = _manual(request)
    assets = await manual.fetch_assets(body.keywords)
    if assets is None:
        return _manual_result(manual, None, "")
    failed = len(assets.failed_positions())
    message = f"Fetched {len(assets.available())}/{len(assets.assets)} assets"
    return _manual_result(manual, assets, message + (f" ({failed} failed)" if failed else ""))


@router.post("/manual/render")
async def render(body: RenderRequest, request: Request):
    manual = _manual(request)
    session_id = await manual.render(body.session_id)
    return _manual_result(
        manual, {"session_id": session_id} if session_id else None, "Render submitted",
    )


# ---------------------------------------------------------------------------
# Per-keyword asset tasks
# ---------------------------------------------------------------------------

@router.get("/assets/items")
async def asset_items(request: Request):
    tracker = _manual(request).tracker
    data = tracker.snapshot()
    data["in_flight"] = tracker.in_flight()
    return envelope(data)


@router.post("/assets/items/{keyword}/source")
async def select_source(keyword: str, body: SourceRequest, request: Request):
    tracker = _manual(request).tracker
    if not tracker.select_source(keyword, body.source):
        return error(f"'{keyword}' is already downloaded", tracker.item(keyword).to_dict())
    return envelope(tracker.item(keyword).to_dict())


@router.post("/assets/items/{keyword}/preview")
async def preview_asset(keyword: str, body: KeywordRequest, request: Request):
    manual = _manual(request)
    outcome = await manual.preview_asset(keyword, body.source)
    item = manual.tracker.item(keyword).to_dict()
    if outcome.error:
        return error(outcome.error, item)
    if outcome.rejected:
        return envelope(item, f"'{keyword}' is already downloaded or being searched", status="warning")
    if outcome.result is None:
        return envelope(item, "No preview available", status="warning")
    return envelope(item, "Preview ready")


@router.post("/assets/items/{keyword}/download")
async def download_asset(keyword: str, body: KeywordRequest, request: Request):
    manual = _manual(request)
    outcome = await manual.download_asset(keyword, body.source)
    item = manual.tracker.item(keyword).to_dict()
    if outcome.error:
        return error(outcome.error, item)
    if outcome.rejected:
        return envelope(item, f"'{keyword}' is already downloaded or downloading", status="warning")
    return envelope(item, f"Downloaded '{keyword}'")


# ---------------------------------------------------------------------------
# Quick Start sessions
# ---------------------------------------------------------------------------

def _session_view(session_id: Optional[str], quick: QuickStart) -> Optional[dict]:
    if session_id is None:
        return None
    snapshot = quick.poller.snapshot(session_id)
    view: dict = {
        "session_id": session_id,
        "polling": quick.poller.is_polling and quick.poller.handle.session_id == session_id,
        "poll_error": quick.poller.last_error,
        "snapshot": snapshot.model_dump(mode="json") if snapshot else None,
    }
    if snapshot is not None:
        phase = classify_phase(snapshot.phase)
        view["phase"] = {"label": phase.label, "emoji": phase.emoji, "description": phase.description}
    return view


@router.post("/pipeline/start")
async def start_pipeline(body: StartRequest, request: Request):
    quick = _quick(request)
    session_id = await quick.start(body.topic, body.skip_check)
    if session_id is None:
        return error(quick.error or "Could not start pipeline")
    return envelope(_session_view(session_id, quick), "Pipeline started")


@router.get("/pipeline/current")
async def current_session(request: Request):
    quick = _quick(request)
    return envelope(_session_view(quick.poller.selected, quick))


@router.post("/pipeline/select/{session_id}")
async def select_session(session_id: str, request: Request):
    quick = _quick(request)
    quick.select(session_id)
    return envelope(_session_view(session_id, quick))


@router.post("/pipeline/stop")
async def stop_polling(request: Request):
    quick = _quick(request)
    quick.stop()
    return envelope(_session_view(quick.poller.selected, quick), "Polling stopped")


@router.get("/pipeline/sessions")
async def sessions(request: Request):
    quick = _quick(request)
    try:
        known = await quick.poller.list_known_sessions()
    except EngineError as e:
        return error(str(e), {sid: s.model_dump(mode="json") for sid, s in quick.sessions.items()})
    return envelope({sid: s.model_dump(mode="json") for sid, s in known.items()})
