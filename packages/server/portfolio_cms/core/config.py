"""
Application configuration loaded from environment variables.

An optional YAML file can override the environment when the server is
started through the CLI (see `load_settings`).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

from portfolio_cms_shared.schemas.common import LOCALES


class Settings(BaseSettings):
    """Portfolio catalog editor configuration."""

    model_config = SettingsConfigDict(env_prefix="PCMS_", env_file=".env", extra="ignore")

    # Portfolio tree (every path below is relative to the root)
    portfolio_root: Path = Path("./portfolio")
    projects_pt_path: str = "data/projects/projects.json"
    projects_en_path: str = "data/projects/projects-en.json"
    projects_es_path: str = "data/projects/projects-es.json"
    projects_assets_dir: str = "assets/images/projects"
    projects_thumbs_dir: str = "assets/images/projects/thumbs"
    icons_file_path: str = "js/icons.js"
    reference_locale: Literal["pt", "en", "es"] = "pt"

    # Sanitizer
    enable_inline_style: bool = False

    # Uploads
    max_file_size_mb: int = 20
    max_upload_files: int = 40

    # Image profile
    thumb_target_width: int = 248
    thumb_card_aspect_ratio: float = 195 / 113
    gallery_max_width: int = 2000
    image_format: Literal["webp", "png", "jpeg"] = "webp"
    image_quality: int = 82
    logo_padding_percent: float = 15
    logo_background_color: str = "#222222"

    # Translation (Ollama)
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.1:70b"
    ollama_timeout_seconds: float = 300
    ollama_max_retries: int = 2
    ollama_models_cache_seconds: float = 30

    # Server
    host: str = "127.0.0.1"
    port: int = 3333
    debug: bool = False
    log_level: str = "info"
    log_format: Literal["json", "text"] = "json"

    # CORS
    cors_origins: list[str] = ["http://localhost:5173"]

    @property
    def thumb_target_height(self) -> int:
        return max(1, round(self.thumb_target_width / max(0.1, self.thumb_card_aspect_ratio)))

    @property
    def catalog_files(self) -> dict[str, str]:
        return {
            "pt": self.projects_pt_path,
            "en": self.projects_en_path,
            "es": self.projects_es_path,
        }

    @property
    def locales(self) -> list[str]:
        return list(LOCALES)

    @property
    def image_extension(self) -> str:
        return ".jpg" if self.image_format == "jpeg" else f".{self.image_format}"

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    return Settings()


def load_settings(path: str | Path | None = None, **overrides: Any) -> Settings:
    """Build settings from the environment, a YAML file and explicit overrides.

    Precedence: overrides > YAML file > environment > defaults.
    """
    values: dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            values.update(yaml.safe_load(f) or {})
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
