"""Step-gate workflow controller for manual mode.

Holds the four shared artifact slots and the current stage pointer. Gate
evaluation is a pure function of the artifacts; every state change goes
through ``transition(state, event)`` so the controller itself only stores
the result, schedules delayed auto-advances and notifies listeners.

Gates:
    stage 1         always reachable
    stages 2, 3, 4  need a script
    stage 5         needs audio AND assets, in either completion order

Usage:
    controller = WorkflowController()
    controller.set_artifact(ArtifactKind.SCRIPT, script)
    controller.reachable(Stage.NARRATION)   # True
    controller.go_to(Stage.RENDER)          # False, state unchanged
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping, Optional, Union

from vidconsole.config import settings
from vidconsole.orchestrator.state import (
    FIRST_STAGE,
    LAST_STAGE,
    STAGES,
    SUPERSEDES,
    ArtifactKind,
    Stage,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowState:
    """Immutable manual-mode state: stage pointer plus artifact slots."""

    stage: Stage = FIRST_STAGE
    artifacts: Mapping[ArtifactKind, Any] = field(default_factory=dict)

    def has(self, kind: ArtifactKind) -> bool:
        return self.artifacts.get(kind) is not None

    def get(self, kind: ArtifactKind) -> Any:
        return self.artifacts.get(kind)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ArtifactSet:
    kind: ArtifactKind
    value: Any


@dataclass(frozen=True)
class GoTo:
    stage: int


@dataclass(frozen=True)
class Advance:
    pass


@dataclass(frozen=True)
class Retreat:
    pass


@dataclass(frozen=True)
class Reset:
    pass


WorkflowEvent = Union[ArtifactSet, GoTo, Advance, Retreat, Reset]


# ---------------------------------------------------------------------------
# Pure gate and transition functions
# ---------------------------------------------------------------------------

def reachable(state: WorkflowState, stage: int) -> bool:
    """Check whether ``stage`` may become the current stage.

    Args:
        state: Current workflow state
        stage: Stage number; values outside 1..5 are never reachable

    Returns:
        True if the gate for ``stage`` is open
    """
    try:
        stage = Stage(stage)
    except ValueError:
        return False

    if stage == Stage.MINING:
        return True
    if stage in (Stage.SCRIPTING, Stage.NARRATION, Stage.ASSETS):
        return state.has(ArtifactKind.SCRIPT)
    return state.has(ArtifactKind.AUDIO) and state.has(ArtifactKind.ASSETS)


def _fallback_stage(state: WorkflowState) -> Stage:
    """Highest reachable stage not above the current one."""
    for candidate in range(state.stage, FIRST_STAGE - 1, -1):
        if reachable(state, candidate):
            return Stage(candidate)
    return FIRST_STAGE


def transition(state: WorkflowState, event: WorkflowEvent) -> WorkflowState:
    """Apply one event and return the next state.

    Navigation events that would bypass a gate return ``state`` unchanged
    (the same object), so callers can detect a rejected move by identity.
    """
    if isinstance(event, ArtifactSet):
        artifacts = dict(state.artifacts)
        artifacts[event.kind] = event.value
        for superseded in SUPERSEDES[event.kind]:
            artifacts.pop(superseded, None)
        next_state = replace(state, artifacts=artifacts)
        if not reachable(next_state, next_state.stage):
            next_state = replace(next_state, stage=_fallback_stage(next_state))
        return next_state

    if isinstance(event, GoTo):
        if not reachable(state, event.stage):
            return state
        return replace(state, stage=Stage(event.stage))

    if isinstance(event, Advance):
        if state.stage >= LAST_STAGE:
            return state
        return transition(state, GoTo(state.stage + 1))

    if isinstance(event, Retreat):
        if state.stage <= FIRST_STAGE:
            return state
        return transition(state, GoTo(state.stage - 1))

    if isinstance(event, Reset):
        return WorkflowState()

    raise TypeError(f"Unknown workflow event: {event!r}")


def advance_target(state: WorkflowState, kind: ArtifactKind) -> Optional[Stage]:
    """Stage to auto-advance to after storing ``kind``, if any.

    content -> scripting, script -> narration, audio -> render when assets
    are already present (else assets), assets -> render when audio is
    present. Only forward moves through an open gate qualify.
    """
    if kind == ArtifactKind.CONTENT:
        target = Stage.SCRIPTING
    elif kind == ArtifactKind.SCRIPT:
        target = Stage.NARRATION
    elif kind == ArtifactKind.AUDIO:
        target = Stage.RENDER if state.has(ArtifactKind.ASSETS) else Stage.ASSETS
    elif kind == ArtifactKind.ASSETS:
        target = Stage.RENDER if state.has(ArtifactKind.AUDIO) else None
    else:
        target = None

    if target is None or target <= state.stage or not reachable(state, target):
        return None
    return target


def step_status(state: WorkflowState, stage: int) -> str:
    """Stepper status of ``stage``: completed, current or upcoming."""
    if stage < state.stage:
        return "completed"
    if stage == state.stage:
        return "current"
    return "upcoming"


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

Listener = Callable[[WorkflowState], None]


class WorkflowController:
    """Owner of the manual-mode artifacts and stage pointer.

    Every operation is a synchronous state transition. The only deferred
    work is the cosmetic auto-advance delay, which lets the completed state
    of the current stage stay visible before the view moves on.
    """

    def __init__(
        self,
        *,
        auto_advance: Optional[bool] = None,
        advance_delay: Optional[float] = None,
    ):
        self.auto_advance = (
            settings.workflow.auto_advance if auto_advance is None else auto_advance
        )
        self.advance_delay = (
            settings.workflow.advance_delay if advance_delay is None else advance_delay
        )
        self._state = WorkflowState()
        self._listeners: list[Listener] = []
        self._pending: Optional[asyncio.TimerHandle] = None
        self._pending_target: Optional[Stage] = None

    # --- read side ---------------------------------------------------------

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def stage(self) -> Stage:
        return self._state.stage

    @property
    def pending_advance(self) -> Optional[Stage]:
        return self._pending_target

    def artifact(self, kind: ArtifactKind) -> Any:
        return self._state.get(kind)

    def reachable(self, stage: int) -> bool:
        return reachable(self._state, stage)

    def step_status(self, stage: int) -> str:
        return step_status(self._state, stage)

    def snapshot(self) -> dict:
        """Plain-data view of the stepper for rendering."""
        return {
            "stage": int(self.stage),
            "stage_name": STAGES[self.stage].name,
            "pending_advance": int(self._pending_target) if self._pending_target else None,
            "stages": [
                {
                    "stage": int(stage),
                    "name": info.name,
                    "description": info.description,
                    "reachable": self.reachable(stage),
                    "status": self.step_status(stage),
                }
                for stage, info in STAGES.items()
            ],
            "artifacts": {kind.value: self._state.has(kind) for kind in ArtifactKind},
        }

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- write side --------------------------------------------------------

    def _dispatch(self, event: WorkflowEvent) -> bool:
        previous = self._state
        self._state = transition(previous, event)
        if self._state is previous:
            return False
        if self._state.stage != previous.stage:
            logger.info(
                "Workflow stage %d (%s) -> %d (%s)",
                previous.stage, STAGES[previous.stage].name,
                self._state.stage, STAGES[self._state.stage].name,
            )
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Workflow listener %r failed", listener)
        return True

    def set_artifact(
        self,
        kind: ArtifactKind,
        value: Any,
        *,
        auto_advance: Optional[bool] = None,
    ) -> Optional[Stage]:
        """Store an artifact and maybe schedule an auto-advance.

        Storing a script supersedes any audio and assets collected for the
        previous script.

        Args:
            kind: Artifact slot to write
            value: Artifact value, stored as-is
            auto_advance: Per-call override of the controller setting

        Returns:
            The stage an advance was scheduled (or applied) to, else None
        """
        self._cancel_pending()
        kind = ArtifactKind(kind)
        dropped = [k.value for k in SUPERSEDES[kind] if self._state.has(k)]
        self._dispatch(ArtifactSet(kind, value))
        logger.info("Stored %s artifact%s", kind.value,
                    f" (superseded: {', '.join(dropped)})" if dropped else "")

        enabled = self.auto_advance if auto_advance is None else auto_advance
        if not enabled:
            return None
        target = advance_target(self._state, kind)
        if target is None:
            return None
        self._schedule_advance(target)
        return target

    def go_to(self, stage: int) -> bool:
        """Move to ``stage`` if its gate is open; otherwise do nothing."""
        self._cancel_pending()
        if not self.reachable(stage):
            logger.debug("Rejected move to stage %s: gate closed", stage)
            return False
        self._dispatch(GoTo(stage))
        return True

    def advance(self) -> bool:
        self._cancel_pending()
        return self._dispatch(Advance())

    def retreat(self) -> bool:
        self._cancel_pending()
        return self._dispatch(Retreat())

    def reset(self) -> None:
        self._cancel_pending()
        self._dispatch(Reset())

    def close(self) -> None:
        """Drop any scheduled auto-advance (owning view went away)."""
        self._cancel_pending()

    # --- delayed auto-advance ----------------------------------------------

    def _schedule_advance(self, target: Stage) -> None:
        if self.advance_delay <= 0:
            self._dispatch(GoTo(target))
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop to defer on; advance right away
            self._dispatch(GoTo(target))
            return
        self._pending_target = target
        self._pending = loop.call_later(self.advance_delay, self._fire_pending)

    def _fire_pending(self) -> None:
        target = self._pending_target
        self._pending = None
        self._pending_target = None
        if target is not None and target > self.stage:
            self._dispatch(GoTo(target))

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
        self._pending = None
        self._pending_target = None
