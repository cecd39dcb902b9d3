"""Application settings and configuration."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ==========================================================================
    # API Keys
    # ==========================================================================
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY", description="Gemini API key")
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude")

    # ==========================================================================
    # Media Generation
    # ==========================================================================
    default_media_model: Literal["gemini", "mock"] = Field(
        default="gemini",
        description="Default media generation backend",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL",
    )
    image_model: str = Field(default="gemini-2.5-flash-image", description="Image model")
    tts_model: str = Field(default="gemini-2.5-flash-preview-tts", description="Speech model")
    video_model: str = Field(default="veo-3.1-fast-generate-preview", description="Video model")
    video_resolution: str = Field(default="720p", description="Video output resolution")
    http_timeout: float = Field(default=120.0, description="HTTP request timeout in seconds")
    video_poll_interval: float = Field(
        default=5.0,
        description="Seconds between video job status polls",
    )
    video_max_wait: float = Field(
        default=600.0,
        description="Maximum seconds to wait for a video job",
    )

    # ==========================================================================
    # Project Defaults
    # ==========================================================================
    default_style: str = Field(
        default="Anime style, high quality, 4k",
        description="Global style descriptor for new projects",
    )
    default_aspect_ratio: Literal["16:9", "9:16", "1:1", "3:4", "4:3"] = Field(
        default="16:9",
        description="Aspect ratio for new projects",
    )
    default_voice_id: str = Field(default="Kore", description="Fallback narration voice")

    # ==========================================================================
    # Pipeline
    # ==========================================================================
    pacing_delay: float = Field(
        default=0.5,
        description="Seconds to wait between batched external requests",
    )
    narration_padding: float = Field(
        default=0.5,
        description="Seconds of padding added after narration when fitting shot duration",
    )
    narration_min_duration: float = Field(
        default=0.5,
        description="Narration clips at or below this length never change shot duration",
    )

    # ==========================================================================
    # Playback
    # ==========================================================================
    clock_tick_hz: float = Field(default=20.0, description="Timeline clock sampling rate")
    restart_epsilon: float = Field(
        default=0.1,
        description="Toggling play within this many seconds of the end restarts from zero",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    output_dir: Path = Field(
        default=Path("./output"),
        description="Output directory for generated media",
    )

    # ==========================================================================
    # LLM Settings
    # ==========================================================================
    claude_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model for story generation",
    )
    max_tokens_story: int = Field(
        default=4096,
        description="Max tokens for story generation response",
    )
    story_temperature: float = Field(default=0.7, description="Story generation temperature")

    @property
    def media_dir(self) -> Path:
        return self.output_dir / "media"

    @property
    def has_gemini_key(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def has_anthropic_key(self) -> bool:
        return bool(self.anthropic_api_key)

    @property
    def tick_interval(self) -> float:
        return 1.0 / self.clock_tick_hz


# Global settings instance
settings = Settings()
