"""Pydantic schemas for automatic pipeline sessions and rendered outputs."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SessionStatus = Literal["running", "completed", "error"]


class KeywordProgress(BaseModel):
    """Download progress of one keyword inside a running session."""

    model_config = ConfigDict(extra="allow")

    keyword: str
    status: Literal["downloading", "success", "failed"]
    source: Optional[str] = None


class AssetsDetail(BaseModel):
    """Nested asset-download detail reported during the assets phase."""

    model_config = ConfigDict(extra="allow")

    total: int = 0
    fetched: int = 0
    keywords: list[KeywordProgress] = Field(default_factory=list)


class PipelineStatus(BaseModel):
    """Snapshot of one remote pipeline session.

    Mutated only by polling responses and immutable once ``status`` is
    ``completed`` or ``error``.
    """

    model_config = ConfigDict(extra="allow")

    status: SessionStatus
    phase: str = "initializing"
    progress: int = Field(default=0, ge=0, le=100)
    message: str = ""
    started_at: str = ""
    topic: str = ""
    output: Optional[str] = None
    completed_at: Optional[str] = None
    assets_detail: Optional[AssetsDetail] = None


class SessionRef(BaseModel):
    """Identifier of a newly started session or render job."""

    session_id: str


class SessionList(BaseModel):
    sessions: dict[str, PipelineStatus] = Field(default_factory=dict)


class OutputVideo(BaseModel):
    """Completed render available in the engine's output folder."""

    name: str
    path: str
    size_mb: float = 0
    created: str = ""


class OutputList(BaseModel):
    videos: list[OutputVideo] = Field(default_factory=list)
