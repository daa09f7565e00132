"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from livevision.config import CaptureSettings, Settings, load_settings


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run each test in an empty directory without LIVEVISION_* variables."""
    monkeypatch.chdir(tmp_path)
    for name in ("LIVEVISION_MOCK", "LIVEVISION_MOCK_MODE", "GEMINI_API_KEY"):
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path):
    settings = load_settings(base_path=tmp_path)

    assert settings.mock_mode is False
    assert settings.capture.jpeg_quality == 80
    assert (settings.capture.camera_width, settings.capture.camera_height) == (1280, 720)
    assert settings.dictation.locale == "es-ES"
    assert settings.dictation.continuous is False
    assert settings.dictation.interim_results is True
    assert settings.analysis.model == "gemini-2.5-flash"
    assert settings.analysis.credential_env == "GEMINI_API_KEY"


def test_yaml_values(tmp_path):
    (tmp_path / "config.yaml").write_text(
        "capture:\n"
        "  jpeg_quality: 90\n"
        "  max_width: 800\n"
        "analysis:\n"
        "  timeout_seconds: 15\n"
        "  default_question: Describe this\n"
    )

    settings = load_settings(base_path=tmp_path)

    assert settings.capture.jpeg_quality == 90
    assert settings.capture.max_width == 800
    assert settings.analysis.timeout_seconds == 15
    assert settings.analysis.default_question == "Describe this"


def test_local_config_takes_priority(tmp_path):
    (tmp_path / "config.yaml").write_text("analysis:\n  model: from-default\n")
    (tmp_path / "config.local.yaml").write_text("analysis:\n  model: from-local\n")

    settings = load_settings(base_path=tmp_path)

    assert settings.analysis.model == "from-local"


def test_env_var_substitution(tmp_path, monkeypatch):
    monkeypatch.setenv("LV_TEST_KEY_FILE", "/run/secrets/gemini")
    (tmp_path / "config.yaml").write_text(
        "analysis:\n  credential_file: ${LV_TEST_KEY_FILE}\n"
    )

    settings = load_settings(base_path=tmp_path)

    assert settings.analysis.credential_file == "/run/secrets/gemini"


def test_empty_config_file(tmp_path):
    (tmp_path / "config.yaml").write_text("")

    settings = load_settings(base_path=tmp_path)

    assert settings.capture.jpeg_quality == 80


def test_mock_env_flag(tmp_path, monkeypatch):
    monkeypatch.setenv("LIVEVISION_MOCK", "true")
    (tmp_path / "config.yaml").write_text("mock_mode: false\n")

    settings = load_settings(base_path=tmp_path)

    assert settings.mock_mode is True


def test_mock_env_flag_without_config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("LIVEVISION_MOCK", "1")

    settings = load_settings(base_path=tmp_path)

    assert settings.mock_mode is True


def test_explicit_path_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path / "nope.yaml"), base_path=tmp_path)


def test_explicit_path(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text("dictation:\n  locale: en-US\n")

    settings = load_settings(str(path), base_path=tmp_path)

    assert settings.dictation.locale == "en-US"


def test_out_of_range_quality_rejected(tmp_path):
    (tmp_path / "config.yaml").write_text("capture:\n  jpeg_quality: 0\n")

    with pytest.raises(ValidationError):
        load_settings(base_path=tmp_path)


def test_non_positive_timeout_rejected():
    with pytest.raises(ValidationError):
        Settings(analysis={"timeout_seconds": 0})


def test_nested_env_override(monkeypatch):
    monkeypatch.setenv("LIVEVISION_CAPTURE_SCREEN_FPS", "2.5")

    assert CaptureSettings().screen_fps == 2.5
