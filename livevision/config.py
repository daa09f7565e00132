"""Configuration management for LiveVision.

Uses Pydantic Settings for environment variable and .env file support,
with an optional YAML file layered on top. YAML values may reference
environment variables as ``${VAR}``.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Default config file locations (in order of priority)
CONFIG_PATHS = [
    "config.local.yaml",  # Local overrides (not in git)
    "config.yaml",        # Default config
]


class CaptureSettings(BaseSettings):
    """Video source and still encoding settings."""

    model_config = SettingsConfigDict(env_prefix="LIVEVISION_CAPTURE_")

    camera_index: int = Field(
        default=0,
        description="OpenCV device index of the camera"
    )
    camera_width: int = Field(
        default=1280,
        description="Requested camera frame width"
    )
    camera_height: int = Field(
        default=720,
        description="Requested camera frame height"
    )
    screen_monitor: int = Field(
        default=1,
        ge=0,
        description="mss monitor index (0 = all monitors combined)"
    )
    screen_fps: float = Field(
        default=5.0,
        gt=0,
        description="Screen grabs per second"
    )
    max_read_failures: int = Field(
        default=30,
        ge=1,
        description="Consecutive failed reads before a source counts as ended"
    )
    jpeg_quality: int = Field(
        default=80,
        ge=1,
        le=100,
        description="JPEG quality used for still payloads"
    )
    max_width: Optional[int] = Field(
        default=None,
        description="Downscale stills wider than this (None = keep size)"
    )
    max_height: Optional[int] = Field(
        default=None,
        description="Downscale stills taller than this (None = keep size)"
    )


class DictationSettings(BaseSettings):
    """Speech-to-text session settings."""

    model_config = SettingsConfigDict(env_prefix="LIVEVISION_DICTATION_")

    enabled: bool = Field(
        default=True,
        description="Allow dictation when a capability is available"
    )
    locale: str = Field(
        default="es-ES",
        description="Recognition locale"
    )
    continuous: bool = Field(
        default=False,
        description="Keep listening after the first utterance"
    )
    interim_results: bool = Field(
        default=True,
        description="Emit partial transcripts while speaking"
    )


class AnalysisSettings(BaseSettings):
    """External analysis service settings."""

    model_config = SettingsConfigDict(env_prefix="LIVEVISION_ANALYSIS_")

    model: str = Field(
        default="gemini-2.5-flash",
        description="Model identifier sent with every request"
    )
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the generateContent API"
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Deadline for a single analysis request"
    )
    default_question: str = Field(
        default="",
        description="Initial contents of the question buffer"
    )
    credential_env: str = Field(
        default="GEMINI_API_KEY",
        description="Environment variable holding the API key"
    )
    credential_file: Optional[str] = Field(
        default=None,
        description="File holding the API key (takes precedence over env)"
    )


class LoggingSettings(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LIVEVISION_LOGGING_")

    level: str = Field(
        default="INFO",
        description="Logging level"
    )
    file: Optional[str] = Field(
        default=None,
        description="Rotating log file (None = console only)"
    )
    max_size_mb: int = Field(
        default=10,
        ge=1,
        description="Rotate the log file after this size"
    )
    backup_count: int = Field(
        default=5,
        ge=0,
        description="Rotated log files to keep"
    )


class Settings(BaseSettings):
    """Root settings for LiveVision.

    Settings are loaded from environment variables with LIVEVISION_ prefix,
    a .env file, or a YAML file passed through load_settings().

    Example environment variables:
        LIVEVISION_MOCK_MODE=true
        LIVEVISION_CAPTURE_JPEG_QUALITY=90
        LIVEVISION_ANALYSIS_TIMEOUT_SECONDS=30
    """

    model_config = SettingsConfigDict(
        env_prefix="LIVEVISION_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    mock_mode: bool = Field(
        default=False,
        description="Use simulated capture, dictation and analysis"
    )

    # Nested settings
    capture: CaptureSettings = Field(default_factory=CaptureSettings)
    dictation: DictationSettings = Field(default_factory=DictationSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR} patterns with environment variables."""
    if isinstance(value, str):
        pattern = r'\$\{([^}]+)\}'

        def replace_env(match):
            var_name = match.group(1)
            env_value = os.environ.get(var_name, "")
            if not env_value:
                logger.warning(f"Environment variable {var_name} not set")
            return env_value

        return re.sub(pattern, replace_env, value)

    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]

    return value


def load_settings(
    config_path: Optional[str] = None,
    base_path: Optional[Path] = None,
) -> Settings:
    """Load settings from a YAML file plus the environment.

    Args:
        config_path: Path to config file. If None, searches default locations
            and falls back to defaults when none exists.
        base_path: Directory searched for .env and default config files.
            Defaults to cwd.

    Returns:
        Validated Settings

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        yaml.YAMLError: If the config file is invalid YAML
        pydantic.ValidationError: If a value is out of range
    """
    base = Path(base_path or Path.cwd())

    env_path = base / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        logger.debug(f"Loaded environment from {env_path}")

    if config_path:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        config_file = None
        for path in CONFIG_PATHS:
            candidate = base / path
            if candidate.exists():
                config_file = candidate
                break

    if config_file is None:
        logger.info("No config file found, using defaults and environment")
        config_data = {}
    else:
        logger.info(f"Loading config from {config_file}")

        with open(config_file, 'r') as f:
            raw_config = yaml.safe_load(f)

        if raw_config is None:
            raw_config = {}

        config_data = _substitute_env_vars(raw_config)

    if os.environ.get("LIVEVISION_MOCK", "").lower() in ("true", "1", "yes"):
        logger.info("LIVEVISION_MOCK environment variable set - enabling mock mode")
        config_data["mock_mode"] = True

    return Settings(**config_data)
