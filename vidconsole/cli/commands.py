"""CLI commands for vidconsole using Typer and Rich.

Commands:
- health:   engine dependency checks
- config:   active engine configuration
- run:      Quick Start a session and follow it to completion
- watch:    follow an existing session
- status:   one-shot session snapshot
- sessions: session history
- outputs:  rendered videos
- voices:   available TTS voices
- search:   look up a preview clip for a keyword
- manual:   drive the five manual stages from the terminal
- serve:    run the local control API
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vidconsole import setup_logging
from vidconsole.config import settings
from vidconsole.orchestrator import (
    ManualWorkflow,
    QuickStart,
    SessionPoller,
    WorkflowController,
    classify_phase,
)
from vidconsole.orchestrator.state import STAGES, status_variant
from vidconsole.schemas import PipelineStatus
from vidconsole.services.engine_client import EngineClient, EngineError, unwrap

app = typer.Typer(name="vidconsole", help="Operator console for the content-to-video engine")
console = Console()

_VARIANT_COLORS = {
    "success": "green",
    "error": "red",
    "info": "cyan",
    "warning": "yellow",
}

_options: dict = {"base_url": None}


@app.callback()
def main(
    base_url: Optional[str] = typer.Option(
        None, "--base-url", "-u", help="Engine API base URL (default from config)"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level (default from config)"
    ),
):
    """Operator console for the content-to-video engine."""
    try:
        setup_logging(log_level or settings.logging.level)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)
    _options["base_url"] = base_url


def _make_client() -> EngineClient:
    return EngineClient(
        _options["base_url"] or settings.service.base_url,
        short_timeout=settings.service.short_timeout,
        long_timeout=settings.service.long_timeout,
    )


def _status_display(status: str) -> str:
    color = _VARIANT_COLORS[status_variant(status)]
    return f"[{color}]{status}[/{color}]"


def _progress_line(snapshot: PipelineStatus) -> str:
    phase = classify_phase(snapshot.phase)
    line = f"{phase.emoji} {phase.label} [{snapshot.progress}%] {snapshot.message or phase.description}"
    detail = snapshot.assets_detail
    if detail is not None and detail.total:
        line += f" ({detail.fetched}/{detail.total} clips)"
    return line


def _print_session(session_id: str, snapshot: PipelineStatus) -> None:
    phase = classify_phase(snapshot.phase)
    info_lines = [
        f"[bold]Session:[/bold] {session_id}",
        f"[bold]Topic:[/bold] {snapshot.topic or '-'}",
        f"[bold]Status:[/bold] {_status_display(snapshot.status)}",
        f"[bold]Phase:[/bold] {phase.emoji} {phase.label}",
        f"[bold]Progress:[/bold] {snapshot.progress}%",
        f"[bold]Message:[/bold] {snapshot.message or phase.description}",
    ]
    if snapshot.started_at:
        info_lines.append(f"[bold]Started:[/bold] {snapshot.started_at}")
    if snapshot.completed_at:
        info_lines.append(f"[bold]Completed:[/bold] {snapshot.completed_at}")
    if snapshot.output:
        info_lines.append(f"[bold]Output:[/bold] [green]{snapshot.output}[/green]")
    detail = snapshot.assets_detail
    if detail is not None and detail.keywords:
        for kw in detail.keywords:
            mark = {"success": "[green]✓[/green]", "failed": "[red]✗[/red]"}.get(kw.status, "…")
            info_lines.append(f"  {mark} {kw.keyword}" + (f" ({kw.source})" if kw.source else ""))

    console.print(Panel("\n".join(info_lines), title="[bold]Session Status[/bold]", border_style="blue"))


async def _follow(poller: SessionPoller, session_id: str) -> Optional[PipelineStatus]:
    """Poll ``session_id`` with a live status line until the loop ends."""
    with console.status("[bold green]Waiting for first status...") as status:
        def on_snapshot(sid: str, snapshot: PipelineStatus):
            if sid == session_id:
                status.update(f"[bold green]{_progress_line(snapshot)}")

        unsubscribe = poller.subscribe(on_snapshot)
        try:
            poller.switch_to(session_id)
            snapshot = await poller.wait()
        finally:
            unsubscribe()
            poller.stop()
    return snapshot


def _report_outcome(poller: SessionPoller, session_id: str, snapshot: Optional[PipelineStatus]) -> None:
    if poller.last_error and (snapshot is None or snapshot.status == "running"):
        console.print(f"[red]✗ Lost contact with session:[/red] {poller.last_error}")
        console.print(f"[yellow]You can resume watching with:[/yellow] vidconsole watch {session_id}")
        raise typer.Exit(code=1)
    if snapshot is None:
        console.print(f"[yellow]No status received for {session_id}[/yellow]")
        raise typer.Exit(code=1)

    _print_session(session_id, snapshot)
    if snapshot.status == "error":
        raise typer.Exit(code=1)


@app.command()
def health():
    """Check engine dependencies (LLM, TTS, stock footage)."""
    asyncio.run(_health_async())


async def _health_async():
    client = _make_client()
    try:
        data = unwrap(await client.get_health())
    except EngineError as e:
        console.print(f"[red]Error:[/red] Engine unreachable: {str(e)}")
        raise typer.Exit(code=1)
    finally:
        await client.close()

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Service")
    table.add_column("Status")
    for name, up in data.checks.model_dump().items():
        table.add_row(name, "[green]up[/green]" if up else "[red]down[/red]")
    console.print(table)

    for issue in data.issues:
        console.print(f"[yellow]⚠ {issue}[/yellow]")
    if not data.assets_ready:
        console.print("[yellow]No stock footage source is available (Pexels or Pixabay)[/yellow]")
    if not data.required_ready:
        console.print("[red]Error:[/red] Required services (Ollama, Edge TTS) are not ready")
        raise typer.Exit(code=1)
    console.print("[green]✓[/green] Engine ready")


@app.command(name="config")
def show_config():
    """Show the engine's active configuration."""
    asyncio.run(_config_async())


async def _config_async():
    client = _make_client()
    try:
        cfg = unwrap(await client.get_config())
    except EngineError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)
    finally:
        await client.close()

    width, height = cfg.video.resolution
    info_lines = [
        f"[bold]Resolution:[/bold] {width}x{height} @ {cfg.video.fps}fps",
        f"[bold]Clip Duration:[/bold] {cfg.video.min_clip_duration}-{cfg.video.max_clip_duration}s",
        f"[bold]Language:[/bold] {cfg.content.language}",
        f"[bold]Style:[/bold] {cfg.content.style}",
        f"[bold]LLM:[/bold] {cfg.llm.model} (temperature {cfg.llm.temperature})",
        f"[bold]TTS:[/bold] {cfg.tts.model} / {cfg.tts.voice_id}",
    ]
    console.print(Panel("\n".join(info_lines), title="[bold]Engine Config[/bold]", border_style="blue"))


@app.command()
def run(
    topic: str = typer.Argument("", help="Topic to make a video about (empty for random)"),
    skip_check: bool = typer.Option(False, "--skip-check", help="Skip the engine's dependency check"),
    interval: Optional[float] = typer.Option(None, "--interval", "-i", help="Polling interval in seconds"),
):
    """Quick Start: run the whole pipeline for a topic and follow its progress."""
    asyncio.run(_run_async(topic, skip_check, interval))


async def _run_async(topic: str, skip_check: bool, interval: Optional[float]):
    client = _make_client()
    try:
        poller = SessionPoller(client, interval=interval)
        quick = QuickStart(client, poller)
        session_id = await quick.start(topic, skip_check)
        if session_id is None:
            console.print(f"[red]Error:[/red] {quick.error}")
            raise typer.Exit(code=1)

        console.print(f"[green]Started session:[/green] {session_id}")
        try:
            snapshot = await _follow(poller, session_id)
        except KeyboardInterrupt:
            console.print()
            console.print("[yellow]Stopped watching. The session keeps running; follow it with:[/yellow]")
            console.print(f"  vidconsole watch {session_id}")
            raise typer.Exit(code=130)
        _report_outcome(poller, session_id, snapshot)
    finally:
        await client.close()


@app.command()
def watch(
    session_id: str = typer.Argument(..., help="Session to follow"),
    interval: Optional[float] = typer.Option(None, "--interval", "-i", help="Polling interval in seconds"),
):
    """Follow a running session until it completes or fails."""
    asyncio.run(_watch_async(session_id, interval))


async def _watch_async(session_id: str, interval: Optional[float]):
    client = _make_client()
    try:
        poller = SessionPoller(client, interval=interval)
        snapshot = await _follow(poller, session_id)
        _report_outcome(poller, session_id, snapshot)
    finally:
        await client.close()


@app.command()
def status(
    session_id: str = typer.Argument(..., help="Session identifier"),
):
    """Show one session's current snapshot."""
    asyncio.run(_status_async(session_id))


async def _status_async(session_id: str):
    client = _make_client()
    try:
        snapshot = unwrap(await client.get_pipeline_status(session_id))
    except EngineError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)
    finally:
        await client.close()
    _print_session(session_id, snapshot)


@app.command()
def sessions():
    """List sessions known to the engine."""
    asyncio.run(_sessions_async())


async def _sessions_async():
    client = _make_client()
    try:
        listing = unwrap(await client.list_pipelines())
    except EngineError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)
    finally:
        await client.close()

    if not listing.sessions:
        console.print("[yellow]No sessions found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Session", style="dim")
    table.add_column("Topic")
    table.add_column("Status")
    table.add_column("Phase")
    table.add_column("Progress", justify="right")
    table.add_column("Started")

    ordered = sorted(listing.sessions.items(), key=lambda item: item[1].started_at, reverse=True)
    for session_id, snap in ordered:
        phase = classify_phase(snap.phase)
        table.add_row(
            session_id,
            snap.topic if len(snap.topic) <= 40 else snap.topic[:37] + "...",
            _status_display(snap.status),
            f"{phase.emoji} {phase.label}",
            f"{snap.progress}%",
            snap.started_at,
        )
    console.print(table)


@app.command()
def outputs():
    """List rendered videos."""
    asyncio.run(_outputs_async())


async def _outputs_async():
    client = _make_client()
    try:
        listing = unwrap(await client.list_outputs())
    except EngineError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)
    finally:
        await client.close()

    if not listing.videos:
        console.print("[yellow]No videos rendered yet[/yellow]")
        return

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Created")
    table.add_column("Path", style="dim")
    for video in listing.videos:
        table.add_row(video.name, f"{video.size_mb:.1f} MB", video.created, video.path)
    console.print(table)


@app.command()
def voices(
    locale: Optional[str] = typer.Option(None, "--locale", "-l", help="Filter by locale prefix, e.g. en or id-ID"),
):
    """List available narration voices."""
    asyncio.run(_voices_async(locale))


async def _voices_async(locale: Optional[str]):
    client = _make_client()
    try:
        catalog = unwrap(await client.get_voices())
    except EngineError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)
    finally:
        await client.close()

    matching = [v for v in catalog.voices if not locale or v.Locale.startswith(locale)]
    if not matching:
        console.print("[yellow]No voices found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Voice")
    table.add_column("Gender")
    table.add_column("Locale")
    for voice in matching:
        table.add_row(voice.ShortName, voice.Gender, voice.Locale)
    console.print(table)
    console.print(f"[dim]Current voice: {catalog.current_voice or '-'}[/dim]")


@app.command()
def search(
    keyword: str = typer.Argument(..., help="Visual keyword"),
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Footage source"),
):
    """Look up a preview clip for one visual keyword."""
    chosen = source or settings.assets.default_source
    if chosen not in settings.assets.sources:
        console.print(f"[red]Error:[/red] Unknown source: {chosen}")
        console.print(f"Allowed: {', '.join(settings.assets.sources)}")
        raise typer.Exit(code=1)
    asyncio.run(_search_async(keyword, chosen))


async def _search_async(keyword: str, source: str):
    client = _make_client()
    try:
        result = unwrap(await client.search_assets(keyword, source))
    except EngineError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)
    finally:
        await client.close()

    if result.preview is None:
        console.print(f"[yellow]No footage found for '{keyword}' on {source}[/yellow]")
        return
    preview = result.preview
    info_lines = [
        f"[bold]Keyword:[/bold] {keyword}",
        f"[bold]Source:[/bold] {result.source}",
        f"[bold]Title:[/bold] {preview.title or '-'}",
        f"[bold]Duration:[/bold] {preview.duration or 0:.1f}s",
        f"[bold]Preview:[/bold] {preview.url or preview.thumbnail or '-'}",
    ]
    console.print(Panel("\n".join(info_lines), title="[bold]Asset Preview[/bold]", border_style="blue"))


@app.command()
def manual(
    topic: str = typer.Argument("random", help="Topic to mine"),
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Footage source for every keyword"),
    per_keyword: bool = typer.Option(
        True, "--per-keyword/--batch", help="Download footage keyword by keyword or in one batch"
    ),
    render: bool = typer.Option(False, "--render/--no-render", help="Render once audio and assets are ready"),
):
    """Run the manual stages one by one: mine, script, narrate, fetch assets, render."""
    asyncio.run(_manual_async(topic, source, per_keyword, render))


async def _manual_async(topic: str, source: Optional[str], per_keyword: bool, render: bool):
    client = _make_client()
    controller = WorkflowController(advance_delay=0)
    controller.subscribe(
        lambda state: console.print(f"[dim]Stage {int(state.stage)}: {STAGES[state.stage].name}[/dim]")
    )
    flow = ManualWorkflow(client, controller)
    try:
        with console.status("[bold green]Mining content...") as status:
            content = await flow.mine(topic)
            _check_step(flow, content)
            console.print(f"[green]✓[/green] Mined: {content.title} ({len(content.body)} chars)")

            status.update("[bold green]Generating script...")
            script = await flow.generate_script()
            _check_step(flow, script)
            console.print(f"[green]✓[/green] Script: {script.title} ({len(script.segments)} segments)")

            status.update("[bold green]Generating narration...")
            audio = await flow.generate_audio()
            _check_step(flow, audio)
            console.print(f"[green]✓[/green] Narration: {len(audio.audio_paths())} clips")

            status.update("[bold green]Fetching footage...")
            if per_keyword:
                keywords = list(flow.tracker.items)
                outcomes = await asyncio.gather(*(flow.download_asset(k, source) for k in keywords))
                failed = [o for o in outcomes if o.error]
                for outcome in failed:
                    console.print(f"[yellow]⚠ No footage for '{outcome.keyword}':[/yellow] {outcome.error}")
                if len(failed) == len(keywords):
                    console.print("[red]Error:[/red] No footage could be downloaded")
                    raise typer.Exit(code=1)
            else:
                _check_step(flow, await flow.fetch_assets())
            assets = flow.assets
            console.print(
                f"[green]✓[/green] Footage: {len(assets.available())}/{len(assets.assets)} clips"
            )

            if not render:
                console.print(f"[green]Ready to render[/green] (stage {int(controller.stage)})")
                return

            status.update("[bold green]Submitting render...")
            session_id = await flow.render()
            _check_step(flow, session_id)

        console.print(f"[green]Render job:[/green] {session_id}")
        poller = SessionPoller(client)
        snapshot = await _follow(poller, session_id)
        _report_outcome(poller, session_id, snapshot)
    finally:
        controller.close()
        await client.close()


def _check_step(flow: ManualWorkflow, result) -> None:
    if result is None:
        console.print(f"[red]✗ {flow.error}[/red]")
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default from config)"),
):
    """Run the local control API."""
    import uvicorn

    uvicorn.run(
        "vidconsole.api.app:app",
        host=host or settings.server.host,
        port=port or settings.server.port,
        reload=False,
    )
