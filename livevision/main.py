#!/usr/bin/env python3
"""LiveVision - Main Entry Point.

Runs an interactive console around one capture and analysis session.

Usage:
    python -m livevision.main [--config CONFIG] [--debug] [--mock]

Commands:
    camera | screen   start (or swap to) a video source
    stop              stop the video source
    mic               toggle dictation
    ask <text>        replace the question
    analyze           capture the current frame and analyze it
    freeze            keep the current frame and stop the source
    clear             dismiss the analysis result
    status            print the session state
    quit              exit
"""

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Dict

import yaml

from livevision.analysis.client import GeminiAnalysisClient
from livevision.config import Settings, load_settings
from livevision.credentials import StaticCredentialStore, credential_store_from_settings
from livevision.dictation.base import DictationEvent
from livevision.models.session import SourceKind
from livevision.session_manager import SessionManager

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings, debug: bool = False) -> None:
    """Configure logging based on settings.

    Args:
        settings: Settings object
        debug: Enable debug mode
    """
    level = logging.DEBUG if debug else getattr(
        logging, settings.logging.level.upper(), logging.INFO
    )

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Console goes to stderr so it does not interleave with the prompt
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.logging.file:
        log_dir = os.path.dirname(settings.logging.file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = RotatingFileHandler(
            settings.logging.file,
            maxBytes=settings.logging.max_size_mb * 1024 * 1024,
            backupCount=settings.logging.backup_count,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Reduce verbosity of some noisy libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logger.info(f"Logging configured (level: {logging.getLevelName(level)})")


def build_manager(settings: Settings) -> SessionManager:
    """Wire real or simulated capabilities into a SessionManager."""
    if settings.mock_mode:
        from livevision.mocks import (
            MockAnalysisCapability,
            MockCaptureCapability,
            MockDictationCapability,
        )

        logger.info("Mock mode: using simulated capture, dictation and analysis")
        return SessionManager(
            capture=MockCaptureCapability(open_delay=0.2),
            dictation=MockDictationCapability(script=[
                DictationEvent.partial("what is"),
                DictationEvent.final("what is in this picture"),
                DictationEvent.end(),
            ]),
            analysis=MockAnalysisCapability(delay=1.0),
            credentials=StaticCredentialStore("mock-api-key"),
            settings=settings,
        )

    from livevision.capture.device import DeviceCaptureCapability

    # No speech engine is bundled; dictation stays disabled
    return SessionManager(
        capture=DeviceCaptureCapability(settings.capture),
        dictation=None,
        analysis=GeminiAnalysisClient(
            base_url=settings.analysis.base_url,
            timeout_seconds=settings.analysis.timeout_seconds,
        ),
        credentials=credential_store_from_settings(settings.analysis),
        settings=settings,
    )


def format_state(state: Dict[str, Any]) -> str:
    """One-screen rendering of the session projection."""
    lines = []
    if state["credential_missing"]:
        lines.append("!! API key not configured")

    source = state["source"].upper() if state["live"] else "none"
    still = state["still"]
    still_text = f"{still['width']}x{still['height']}" if still else "none"
    lines.append(
        f"source: {source} | still: {still_text} | "
        f"mic: {state['dictation_state']} | analysis: {state['analysis_status']}"
    )

    if state["acquisition_error"]:
        lines.append(f"source error: {state['acquisition_error']}")

    question = state["text_buffer"]
    if state["interim_text"]:
        question += f" [{state['interim_text']}...]"
    lines.append(f"question: {question}")

    if state["analysis_status"] == "succeeded":
        lines.append(f"result:\n{state['analysis_text']}")
    elif state["analysis_status"] == "failed":
        lines.append(f"result: Error: {state['analysis_text']}")

    return "\n".join(lines)


class Console:
    """Line-based operator console."""

    def __init__(self, manager: SessionManager):
        self.manager = manager
        self._last_rendered = ""

    def on_state(self, state: Dict[str, Any]) -> None:
        rendered = format_state(state)
        if rendered != self._last_rendered:
            self._last_rendered = rendered
            print(f"\n{rendered}")

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        print(__doc__.split("Commands:")[1])
        while True:
            try:
                line = await loop.run_in_executor(None, input, "> ")
            except EOFError:
                break
            if not await self.handle(line.strip()):
                break

    async def handle(self, line: str) -> bool:
        """Run one command. Returns False to quit."""
        command, _, argument = line.partition(" ")
        command = command.lower()

        if command in ("quit", "exit"):
            return False
        elif command == "camera":
            await self.manager.acquire(SourceKind.CAMERA)
        elif command == "screen":
            await self.manager.acquire(SourceKind.SCREEN)
        elif command == "stop":
            self.manager.release()
        elif command == "mic":
            if not self.manager.dictation.supported:
                print("Dictation is not available")
            await self.manager.toggle_dictation()
        elif command == "ask":
            self.manager.set_text(argument)
        elif command == "analyze":
            task = self.manager.start_analysis()
            task.add_done_callback(self._report_rejection)
        elif command == "freeze":
            if not self.manager.freeze(stop_source=True):
                print("Nothing to freeze")
        elif command == "clear":
            self.manager.clear_result()
        elif command == "status":
            print(format_state(self.manager.snapshot()))
        elif command:
            print(f"Unknown command: {command}")
        return True

    def _report_rejection(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        rejection = task.result()
        if rejection is not None:
            print(f"\nNot analyzed: {rejection.message}")


async def run(settings: Settings) -> None:
    """Run the console until the operator quits."""
    manager = build_manager(settings)
    console = Console(manager)
    manager.add_listener(console.on_state)

    async with manager:
        await console.run()


def main() -> int:
    """Main entry point for LiveVision."""
    parser = argparse.ArgumentParser(
        description="LiveVision - capture a frame and ask a multimodal model about it"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config file (default: config.local.yaml or config.yaml)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use simulated capture, dictation and analysis",
    )

    args = parser.parse_args()

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.mock:
        settings.mock_mode = True

    setup_logging(settings, args.debug)

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
