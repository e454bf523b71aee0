"""Tests for the Typer console using CliRunner and a scripted engine."""

import pytest
from typer.testing import CliRunner

from conftest import FakeEngineClient, fail, make_assets, make_audio, make_content, make_script, ok, snapshot
from vidconsole.cli import commands
from vidconsole.schemas import HealthData, SessionList, SessionRef

runner = CliRunner()


@pytest.fixture
def engine(monkeypatch) -> FakeEngineClient:
    fake = FakeEngineClient()
    monkeypatch.setattr(commands, "_make_client", lambda: fake)
    monkeypatch.setattr(commands.settings.polling, "interval", 0.005)
    return fake


def test_health_reports_missing_required_service(engine):
    engine.queue("get_health", ok(HealthData.model_validate({
        "checks": {"ollama": False, "edge_tts": True, "pexels": True},
        "issues": ["Ollama is not running"],
    })))
    result = runner.invoke(commands.app, ["health"])

    assert result.exit_code == 1
    assert "Ollama is not running" in result.output
    assert engine.closed


def test_health_ok(engine):
    engine.queue("get_health", ok(HealthData.model_validate({
        "checks": {"ollama": True, "edge_tts": True, "pexels": True},
    })))
    result = runner.invoke(commands.app, ["health"])

    assert result.exit_code == 0
    assert "Engine ready" in result.output


def test_run_follows_session_to_completion(engine):
    engine.queue("start_pipeline", ok(SessionRef(session_id="s1")))
    engine.queue("list_pipelines", ok(SessionList()))
    engine.queue(
        "get_pipeline_status",
        ok(snapshot("running", "assets", 70)),
        ok(snapshot("completed", "done", 100, topic="volcano", output="/out/volcano.mp4")),
    )
    result = runner.invoke(commands.app, ["run", "volcano"])

    assert result.exit_code == 0, result.output
    assert "Started session: s1" in result.output
    assert "/out/volcano.mp4" in result.output


def test_run_exits_nonzero_when_session_fails(engine):
    engine.queue("start_pipeline", ok(SessionRef(session_id="s1")))
    engine.queue("list_pipelines", ok(SessionList()))
    engine.queue("get_pipeline_status", ok(snapshot("error", "error", 40, message="Render crashed")))
    result = runner.invoke(commands.app, ["run"])

    assert result.exit_code == 1
    assert "Render crashed" in result.output


def test_start_refusal_is_an_error(engine):
    engine.queue("start_pipeline", fail("Engine busy"))
    result = runner.invoke(commands.app, ["run", "volcano"])

    assert result.exit_code == 1
    assert "Engine busy" in result.output


def test_sessions_table(engine):
    engine.queue("list_pipelines", ok(SessionList(sessions={
        "s1": snapshot("completed", "done", 100, topic="volcano", started_at="2026-01-01T10:00:00"),
    })))
    result = runner.invoke(commands.app, ["sessions"])

    assert result.exit_code == 0
    assert "volcano" in result.output


def test_search_rejects_unknown_source(engine):
    result = runner.invoke(commands.app, ["search", "ocean", "--source", "vimeo"])
    assert result.exit_code == 1
    assert engine.calls == []


def test_manual_batch_stops_before_render(engine):
    engine.queue("mine_content", ok(make_content("Komodo")))
    engine.queue("generate_script", ok(make_script("lizard", "island")))
    engine.queue("generate_audio", ok(make_audio(2)))
    engine.queue("fetch_assets", ok(make_assets("lizard", None)))
    result = runner.invoke(commands.app, ["manual", "Komodo", "--batch"])

    assert result.exit_code == 0, result.output
    assert "Footage: 1/2 clips" in result.output
    assert "Ready to render" in result.output
    assert engine.calls_to("render_video") == []
