"""Pydantic schemas for the four workflow artifacts and their helper payloads.

Each manual stage produces exactly one of these:

- Mining     -> RawContent
- Scripting  -> VideoScript
- Narration  -> TTSData
- Assets     -> AssetsData

Shapes mirror the ``data`` payloads of the engine endpoints; unknown extra
fields are kept so nothing the engine sends is silently lost.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _EngineModel(BaseModel):
    model_config = ConfigDict(extra="allow")


# ---------------------------------------------------------------------------
# Mining
# ---------------------------------------------------------------------------

class RawContent(_EngineModel):
    """Mined article content used as scripting input."""

    title: str
    body: str
    source: str = ""
    url: str = ""
    author: str = ""
    score: float = 0
    created_at: str = ""
    category: str = ""


# ---------------------------------------------------------------------------
# Scripting
# ---------------------------------------------------------------------------

class Segment(_EngineModel):
    """One narrated segment with the visual keyword used to find footage."""

    text: str = Field(description="Narration text for this segment")
    visual_keyword: str = Field(description="Short stock-footage search term")
    duration_estimate: float = Field(default=0, description="Estimated seconds")


class VideoScript(_EngineModel):
    """Structured video script produced by the LLM stage."""

    title: str
    source_url: str = ""
    total_duration: float = 0
    segments: list[Segment] = Field(default_factory=list)

    def keywords(self) -> list[str]:
        """Visual keywords in segment order (one per segment)."""
        return [segment.visual_keyword for segment in self.segments]

    def narration_texts(self) -> list[str]:
        return [segment.text for segment in self.segments]


# ---------------------------------------------------------------------------
# Narration
# ---------------------------------------------------------------------------

class AudioSegment(_EngineModel):
    """Synthesized narration for one script segment."""

    index: int
    text: str = ""
    file_path: str
    exists: bool = True
    duration: float = 0


class TTSData(_EngineModel):
    """Per-segment audio produced by the narration stage."""

    session_id: str = ""
    segments: list[AudioSegment] = Field(default_factory=list)

    def audio_paths(self) -> list[str]:
        return [segment.file_path for segment in sorted(self.segments, key=lambda s: s.index)]


class TTSPreview(_EngineModel):
    file_path: str
    duration: float = 0


class Voice(_EngineModel):
    """Voice catalog entry (field names follow the TTS provider)."""

    Name: str = ""
    ShortName: str
    Gender: str = ""
    Locale: str = ""


class VoiceCatalog(_EngineModel):
    voices: list[Voice] = Field(default_factory=list)
    current_voice: str = ""


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------

class VideoAsset(_EngineModel):
    """Downloaded stock-footage clip for one keyword."""

    keyword: str
    file_path: str
    exists: bool = True
    source: str = ""
    duration: float = 0
    orientation: str = "landscape"


class AssetsData(_EngineModel):
    """Aggregate asset artifact.

    ``assets`` is positional: entry *i* belongs to keyword *i* of the batch.
    A ``None`` entry marks a keyword whose footage could not be fetched; the
    rest of the batch stays usable.
    """

    session_id: str = ""
    assets: list[Optional[VideoAsset]] = Field(default_factory=list)

    def available(self) -> list[VideoAsset]:
        return [asset for asset in self.assets if asset is not None]

    def failed_positions(self) -> list[int]:
        return [i for i, asset in enumerate(self.assets) if asset is None]

    def asset_paths(self) -> list[str]:
        return [asset.file_path for asset in self.available()]


class AssetPreview(_EngineModel):
    """Thumbnail metadata for a candidate clip."""

    title: str = ""
    url: str = ""
    thumbnail: str = ""
    duration: float = 0
    width: int = 0
    height: int = 0


class AssetSearchResult(_EngineModel):
    """Single-keyword preview lookup result."""

    keyword: str
    source: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    preview: Optional[AssetPreview] = None


class DownloadedAsset(_EngineModel):
    """Persisted asset descriptor returned by a single-keyword download."""

    path: str
    source: str = ""
    original_url: str = ""
    duration: float = 0


class SingleAssetDownload(_EngineModel):
    keyword: str
    source: str
    asset: DownloadedAsset
