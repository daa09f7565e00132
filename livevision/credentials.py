"""Read-only credential stores for the analysis API key."""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from livevision.config import AnalysisSettings

logger = logging.getLogger(__name__)


class CredentialStore(ABC):
    """Source of the analysis API key. Read once at startup."""

    @abstractmethod
    def get(self) -> Optional[str]:
        """The stored credential, or None when absent."""


class EnvCredentialStore(CredentialStore):
    """Reads the key from an environment variable."""

    def __init__(self, var_name: str = "GEMINI_API_KEY"):
        self.var_name = var_name

    def get(self) -> Optional[str]:
        value = os.environ.get(self.var_name, "").strip()
        return value or None


class FileCredentialStore(CredentialStore):
    """Reads the key from the first line of a file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def get(self) -> Optional[str]:
        try:
            with open(self.path, "r") as f:
                value = f.readline().strip()
        except FileNotFoundError:
            logger.warning(f"Credential file not found: {self.path}")
            return None
        except OSError as e:
            logger.error(f"Cannot read credential file {self.path}: {e}")
            return None
        return value or None


class StaticCredentialStore(CredentialStore):
    """Fixed value (mock mode and tests)."""

    def __init__(self, value: Optional[str]):
        self.value = value

    def get(self) -> Optional[str]:
        return self.value or None


def credential_store_from_settings(settings: AnalysisSettings) -> CredentialStore:
    """Pick the file store when configured, else the environment store."""
    if settings.credential_file:
        return FileCredentialStore(Path(settings.credential_file))
    return EnvCredentialStore(settings.credential_env)
