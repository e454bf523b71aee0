"""Stage, phase and status constants plus the phase classifier.

Manual mode walks five ordered stages, each gated on artifacts produced by
earlier ones. Quick Start sessions report a remote phase tag that is mapped
to display metadata here; session status drives terminal-state detection.
"""

from enum import Enum, IntEnum
from typing import Dict, NamedTuple


class Stage(IntEnum):
    """Manual-mode stages in execution order."""

    MINING = 1
    SCRIPTING = 2
    NARRATION = 3
    ASSETS = 4
    RENDER = 5


FIRST_STAGE = Stage.MINING
LAST_STAGE = Stage.RENDER


class ArtifactKind(str, Enum):
    """Workflow artifact slots, one per producing stage."""

    CONTENT = "content"
    SCRIPT = "script"
    AUDIO = "audio"
    ASSETS = "assets"


# Stage that produces each artifact kind
PRODUCED_BY: Dict[ArtifactKind, Stage] = {
    ArtifactKind.CONTENT: Stage.MINING,
    ArtifactKind.SCRIPT: Stage.SCRIPTING,
    ArtifactKind.AUDIO: Stage.NARRATION,
    ArtifactKind.ASSETS: Stage.ASSETS,
}

# Artifacts superseded when a new value of the key kind is stored
SUPERSEDES: Dict[ArtifactKind, frozenset] = {
    ArtifactKind.CONTENT: frozenset(),
    ArtifactKind.SCRIPT: frozenset({ArtifactKind.AUDIO, ArtifactKind.ASSETS}),
    ArtifactKind.AUDIO: frozenset(),
    ArtifactKind.ASSETS: frozenset(),
}


class StageInfo(NamedTuple):
    name: str
    description: str
    example: str


STAGES: Dict[Stage, StageInfo] = {
    Stage.MINING: StageInfo(
        "Mining",
        "Fetch content from Wikipedia/RSS",
        'e.g. "Indonesia", "Space", "Technology"',
    ),
    Stage.SCRIPTING: StageInfo(
        "Scripting",
        "Generate the video script with the LLM",
        "Turns content into segments with visual keywords",
    ),
    Stage.NARRATION: StageInfo(
        "Narration",
        "Generate narration audio (TTS)",
        "Text-to-speech via Edge TTS or XTTS",
    ),
    Stage.ASSETS: StageInfo(
        "Assets",
        "Download stock footage",
        "Clips from Pexels/Pixabay matched to visual keywords",
    ),
    Stage.RENDER: StageInfo(
        "Render",
        "Assemble the final video",
        "Combines audio, footage and subtitles",
    ),
}


# ---------------------------------------------------------------------------
# Remote session phases and statuses
# ---------------------------------------------------------------------------

class PhaseInfo(NamedTuple):
    label: str
    emoji: str
    description: str


# Remote pipeline phases in execution order
PIPELINE_PHASES: Dict[str, PhaseInfo] = {
    "initializing": PhaseInfo("Initializing", "🚀", "Preparing the system..."),
    "mining": PhaseInfo("Mining Content", "📝", "Fetching information from Wikipedia..."),
    "scripting": PhaseInfo("Generating Script", "🧠", "AI is writing the video script..."),
    "tts": PhaseInfo("Generating Audio", "🎙️", "Synthesizing narration audio..."),
    "assets": PhaseInfo("Downloading Assets", "📹", "Downloading stock footage..."),
    "rendering": PhaseInfo("Rendering Video", "🎬", "Assembling the final video..."),
    "done": PhaseInfo("Done", "✅", "Pipeline finished!"),
    "error": PhaseInfo("Failed", "❌", "Pipeline stopped with an error"),
}

SESSION_STATUSES = {
    "running": "Session is executing on the engine",
    "completed": "Session finished and produced an output",
    "error": "Session failed on the engine",
}

# Statuses after which a session snapshot never changes
TERMINAL_STATUSES = frozenset({"completed", "error"})


def classify_phase(phase: str) -> PhaseInfo:
    """Map a remote phase tag to display metadata.

    Unknown tags are displayed as-is with a generic description, so a newer
    engine that adds phases still renders.

    Args:
        phase: Phase tag from a session snapshot

    Returns:
        PhaseInfo with label, emoji and description
    """
    return PIPELINE_PHASES.get(phase, PhaseInfo(phase, "⏳", "Processing..."))


def is_terminal(status: str) -> bool:
    """Check if a session status is terminal (completed or error)."""
    return status in TERMINAL_STATUSES


def status_variant(status: str) -> str:
    """Display variant for a session status.

    Returns:
        "success" for completed, "error" for error, "info" for running,
        "warning" for anything else
    """
    if status == "completed":
        return "success"
    elif status == "error":
        return "error"
    elif status == "running":
        return "info"
    return "warning"
