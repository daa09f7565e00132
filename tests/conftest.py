"""
Shared pytest fixtures for the LiveVision test suite.

Provides mock capabilities and pre-wired controllers so unit tests run
without a camera, a display, a microphone or network access.
"""

import asyncio
from typing import Callable

import pytest

from livevision.analysis.coordinator import AnalysisCoordinator
from livevision.capture.media_source import MediaSourceController
from livevision.config import AnalysisSettings, Settings
from livevision.credentials import StaticCredentialStore
from livevision.dictation.controller import DictationController
from livevision.mocks import (
    MockAnalysisCapability,
    MockCaptureCapability,
    MockDictationCapability,
)
from livevision.models.session import Session
from livevision.session_manager import SessionManager


async def _wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.005)


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------

@pytest.fixture
def capture():
    return MockCaptureCapability()


@pytest.fixture
def dictation_capability():
    return MockDictationCapability()


@pytest.fixture
def analysis_capability():
    return MockAnalysisCapability()


# ---------------------------------------------------------------------------
# Session and controllers
# ---------------------------------------------------------------------------

@pytest.fixture
def session():
    """Session with a configured API key."""
    return Session(credential="test-key")


@pytest.fixture
def media(session, capture):
    return MediaSourceController(session, capture)


@pytest.fixture
def dictation(session, dictation_capability):
    return DictationController(session, dictation_capability)


@pytest.fixture
def analysis_settings():
    return AnalysisSettings()


@pytest.fixture
def coordinator(session, analysis_capability, media, analysis_settings):
    return AnalysisCoordinator(
        session,
        analysis_capability,
        media,
        settings=analysis_settings,
    )


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def manager(capture, dictation_capability, analysis_capability, settings):
    return SessionManager(
        capture=capture,
        dictation=dictation_capability,
        analysis=analysis_capability,
        credentials=StaticCredentialStore("test-key"),
        settings=settings,
    )


@pytest.fixture
def wait_until():
    """Async helper: ``await wait_until(lambda: cond)``."""
    return _wait_until
