"""Settings for the sticker pipeline.

Values are layered: built-in defaults, then an optional YAML file
(``languagesgo.yml`` in the working directory or an explicit path), then
environment variables. A ``.env`` file in the working directory is loaded
into the environment first.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "languagesgo.yml"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash-preview-image-generation"

# Setting name -> environment variable(s), first match wins
ENV_VARS: dict[str, tuple[str, ...]] = {
    "supabase_url": ("SUPABASE_URL",),
    "supabase_key": ("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_ANON_KEY"),
    "gemini_api_key": ("GEMINI_API_KEY",),
    "gemini_model": ("LANGUAGES_GO_GEMINI_MODEL",),
    "bucket": ("LANGUAGES_GO_BUCKET",),
    "cards_table": ("LANGUAGES_GO_CARDS_TABLE",),
    "jobs_table": ("LANGUAGES_GO_JOBS_TABLE",),
    "batch_size": ("LANGUAGES_GO_BATCH_SIZE",),
    "batch_delay_s": ("LANGUAGES_GO_BATCH_DELAY_S",),
    "job_timeout_s": ("LANGUAGES_GO_JOB_TIMEOUT_S",),
    "http_timeout_s": ("LANGUAGES_GO_HTTP_TIMEOUT_S",),
    "max_attempts": ("LANGUAGES_GO_MAX_ATTEMPTS",),
    "retry_base_delay_s": ("LANGUAGES_GO_RETRY_BASE_DELAY_S",),
}


@dataclass
class StickerSettings:
    """Connection details and tuning knobs for sticker generation."""
    supabase_url: str = ""
    supabase_key: str = ""
    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_GEMINI_MODEL
    bucket: str = "stickers"
    cards_table: str = "vocabulary_cards"
    jobs_table: str = "sticker_generation_jobs"
    batch_size: int = 5
    batch_delay_s: float = 2.0
    job_timeout_s: float = 120.0
    http_timeout_s: float = 60.0
    max_attempts: int = 3
    retry_base_delay_s: float = 2.0

    def validate(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be positive, got {self.max_attempts}")
        if self.batch_delay_s < 0:
            raise ValueError(f"batch_delay_s cannot be negative, got {self.batch_delay_s}")


def _coerce(name: str, raw: Any) -> Any:
    """Convert a raw YAML/env value to the type of the named field."""
    default = getattr(StickerSettings, name)
    if isinstance(default, int):
        return int(float(raw))
    if isinstance(default, float):
        return float(raw)
    return str(raw)


def _load_yaml(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    known = {f.name for f in fields(StickerSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown setting(s) in {path}: {', '.join(unknown)}")
    return data


def load_settings(config_path: Optional[str | Path] = None) -> StickerSettings:
    """Build settings from defaults, YAML and the environment.

    Args:
        config_path: Explicit YAML file. When omitted, ``languagesgo.yml``
            in the working directory is used if present.

    Returns:
        Validated settings.
    """
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    values: dict[str, Any] = {}

    if config_path is not None:
        yaml_path = Path(config_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")
    else:
        yaml_path = Path.cwd() / DEFAULT_CONFIG_FILE

    if yaml_path.exists():
        logger.debug(f"Loading settings from {yaml_path}")
        for name, raw in _load_yaml(yaml_path).items():
            values[name] = _coerce(name, raw)

    for name, env_names in ENV_VARS.items():
        for env_name in env_names:
            raw = os.environ.get(env_name)
            if raw is not None and raw.strip() != "":
                values[name] = _coerce(name, raw)
                break

    settings = StickerSettings(**values)
    settings.validate()
    return settings
