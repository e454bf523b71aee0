"""Pydantic schemas for engine health, configuration echo and capability probes."""

from pydantic import BaseModel, ConfigDict, Field


class _EngineModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class HealthChecks(_EngineModel):
    """Per-dependency readiness flags reported by /health."""

    ollama: bool = False
    pexels: bool = False
    pixabay: bool = False
    edge_tts: bool = False
    xtts_kaggle: bool = False


class HealthData(_EngineModel):
    checks: HealthChecks = Field(default_factory=HealthChecks)
    issues: list[str] = Field(default_factory=list)

    @property
    def ready(self) -> bool:
        return not self.issues

    @property
    def required_ready(self) -> bool:
        """LLM and the default TTS must be up to run the pipeline at all."""
        return self.checks.ollama and self.checks.edge_tts

    @property
    def assets_ready(self) -> bool:
        return self.checks.pexels or self.checks.pixabay


class VideoConfig(_EngineModel):
    max_clip_duration: float = 0
    min_clip_duration: float = 0
    format: str = ""
    resolution: tuple[int, int] = (0, 0)
    fps: int = 0


class ContentConfig(_EngineModel):
    language: str = ""
    style: str = ""
    max_script_duration: float = 0


class TTSConfig(_EngineModel):
    model: str = ""
    voice_id: str = ""


class LLMConfig(_EngineModel):
    model: str = ""
    temperature: float = 0


class ScraperConfig(_EngineModel):
    subreddits: list[str] = Field(default_factory=list)
    post_limit: int = 0


class AppConfig(_EngineModel):
    """Active engine configuration as echoed by /config."""

    video: VideoConfig = Field(default_factory=VideoConfig)
    content: ContentConfig = Field(default_factory=ContentConfig)
    tts: TTSConfig = Field(default_factory=TTSConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    scraper: ScraperConfig = Field(default_factory=ScraperConfig)


class LLMStatus(_EngineModel):
    available: bool = False
    model: str = ""
    url: str = ""


class TTSStatus(_EngineModel):
    edge_tts: bool = False
    xtts_kaggle: bool = False
    current_model: str = ""
    voice_id: str = ""


class AssetsStatus(_EngineModel):
    pexels: bool = False
    pixabay: bool = False
    primary_source: str = ""
    cache_enabled: bool = False


class EditorPreview(_EngineModel):
    max_clip_duration: float = 0
    min_clip_duration: float = 0
    resolution: tuple[int, int] = (0, 0)
    fps: int = 0
    bg_music_volume: float = 0
