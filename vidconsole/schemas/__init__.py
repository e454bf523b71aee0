"""Pydantic models for engine payloads.

Usage:
    from vidconsole.schemas import StatusResponse, VideoScript

    envelope = StatusResponse[VideoScript].model_validate(payload)
"""

from vidconsole.schemas.artifacts import (
    AssetPreview,
    AssetsData,
    AssetSearchResult,
    AudioSegment,
    DownloadedAsset,
    RawContent,
    Segment,
    SingleAssetDownload,
    TTSData,
    TTSPreview,
    VideoAsset,
    VideoScript,
    Voice,
    VoiceCatalog,
)
from vidconsole.schemas.envelope import StatusResponse
from vidconsole.schemas.pipeline import (
    AssetsDetail,
    KeywordProgress,
    OutputList,
    OutputVideo,
    PipelineStatus,
    SessionList,
    SessionRef,
)
from vidconsole.schemas.system import (
    AppConfig,
    AssetsStatus,
    EditorPreview,
    HealthData,
    LLMStatus,
    TTSStatus,
)

__all__ = [
    "AppConfig",
    "AssetPreview",
    "AssetsData",
    "AssetsDetail",
    "AssetSearchResult",
    "AssetsStatus",
    "AudioSegment",
    "DownloadedAsset",
    "EditorPreview",
    "HealthData",
    "KeywordProgress",
    "LLMStatus",
    "OutputList",
    "OutputVideo",
    "PipelineStatus",
    "RawContent",
    "Segment",
    "SessionList",
    "SessionRef",
    "SingleAssetDownload",
    "StatusResponse",
    "TTSData",
    "TTSPreview",
    "TTSStatus",
    "VideoAsset",
    "VideoScript",
    "Voice",
    "VoiceCatalog",
]
