"""Client-side orchestration core.

- workflow: step-gate controller for manual mode
- poller:   session poller for Quick Start runs
- assets:   per-keyword asset task tracker
- state:    stage/phase constants and the phase classifier
"""

from vidconsole.orchestrator.assets import AssetStatus, AssetTaskTracker, KeywordOutcome
from vidconsole.orchestrator.manual import ManualWorkflow
from vidconsole.orchestrator.poller import PollHandle, SessionPoller
from vidconsole.orchestrator.quick import QuickStart
from vidconsole.orchestrator.state import ArtifactKind, Stage, classify_phase, is_terminal
from vidconsole.orchestrator.workflow import WorkflowController, WorkflowState

__all__ = [
    "ArtifactKind",
    "AssetStatus",
    "AssetTaskTracker",
    "KeywordOutcome",
    "ManualWorkflow",
    "PollHandle",
    "QuickStart",
    "SessionPoller",
    "Stage",
    "WorkflowController",
    "WorkflowState",
    "classify_phase",
    "is_terminal",
]
