"""Configuration loading and management."""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class VideoConfig(BaseModel):
    """Video output configuration (vertical canvas)."""

    width: int = 1080
    height: int = 1920
    fps: int = 30
    format: str = "mp4"
    codec: str = "h264"
    crf: int = 23
    preset: str = "medium"
    audio_bitrate: str = "128k"
    crossfade_seconds: float = 0.5
    zoom_max: float = 1.3
    pan_amplitude_px: int = 20

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


class TTSConfig(BaseModel):
    """Text-to-speech configuration."""

    provider: str = "elevenlabs"
    model: str = "eleven_multilingual_v2"
    output_format: str = "mp3_44100_128"
    api_key_env: str = "ELEVENLABS_API_KEY"
    voices: dict[str, str] = Field(
        default_factory=lambda: {
            "zh": "pNInz6obpgDQGcFmaJgB",
            "en": "21m00Tcm4TlvDq8ikWAM",
            "fr": "ThT5KcBeYPX3keUQqHPh",
        }
    )


class LLMConfig(BaseModel):
    """Text generation configuration (analysis, script, storyboard)."""

    provider: str = "gemini"
    model: str = "gemini-2.5-flash"
    api_key_env: str = "GOOGLE_GEMINI_API_KEY"
    max_tokens: int = 4096
    temperature: float = 0.8


class ImageConfig(BaseModel):
    """Image generation configuration."""

    provider: str = "gemini-3-pro"
    first_image_provider: str = "gemini-2.5-flash-image"
    recursive: bool = True
    max_parallel: int = 10
    api_key_env: str = "GOOGLE_GEMINI_API_KEY"
    aspect_ratio: str = "9:16"
    resolution: str = "1K"
    # Provider name -> Gemini model id
    models: dict[str, str] = Field(
        default_factory=lambda: {
            "gemini-3-pro": "gemini-3-pro-image-preview",
            "gemini-2.5-flash-image": "gemini-2.5-flash-image",
        }
    )


class AnimationConfig(BaseModel):
    """Image-to-video animation configuration.

    ``enabled`` is resolved once by :func:`load_config` and passed down
    explicitly; nothing downstream re-reads the environment.
    """

    enabled: bool = False
    api_key_env: str = "MINIMAX_API_KEY"
    model: str = "MiniMax-Hailuo-2.3"
    resolution: str = "768P"
    clip_seconds: int = 6
    poll_interval: float = 10.0
    max_wait_seconds: float = 120.0
    price_per_second: float = 0.045


class PricingConfig(BaseModel):
    """Unit prices in USD."""

    image: dict[str, float] = Field(
        default_factory=lambda: {
            "dalle3": 0.04,
            "gemini-2.5-flash-image": 0.01,
            "gemini-3-pro": 0.05,
        }
    )
    tts_per_1000_chars: float = 0.15


class PathsConfig(BaseModel):
    """Path configuration."""

    projects_dir: str = "projects"
    storage_dir: str = "uploads"
    base_url: str = "http://localhost:8000"


class Config(BaseModel):
    """Main application configuration."""

    video: VideoConfig = Field(default_factory=VideoConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    tts: TTSConfig = Field(default_factory=TTSConfig)
    images: ImageConfig = Field(default_factory=ImageConfig)
    animation: AnimationConfig = Field(default_factory=AnimationConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "Config":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            return cls()

        # Flatten nested resolution config
        if "video" in data and "resolution" in data["video"]:
            res = data["video"].pop("resolution")
            data["video"]["width"] = res.get("width", 1080)
            data["video"]["height"] = res.get("height", 1920)

        return cls(**data)

    def to_yaml(self, path: Path | str) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump()
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)

    def image_price(self, provider: str) -> float:
        """Flat per-image price for a provider (falls back to the pro tier)."""
        return self.pricing.image.get(provider, self.pricing.image.get("gemini-3-pro", 0.05))


def resolve_features(config: Config) -> Config:
    """Resolve environment-derived feature flags exactly once.

    Animation is enabled when its API key is present, unless the YAML
    explicitly turned it on already.
    """
    if not config.animation.enabled:
        config.animation.enabled = bool(os.environ.get(config.animation.api_key_env))
    return config


def load_config(config_path: Path | str | None = None) -> Config:
    """Load configuration from file or use defaults."""
    load_dotenv()

    if config_path is None:
        # Look for config.yaml in current directory or project root
        candidates = [Path("config.yaml"), Path(__file__).parent.parent / "config.yaml"]
        for candidate in candidates:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is not None:
        config = Config.from_yaml(config_path)
    else:
        config = Config()

    return resolve_features(config)
