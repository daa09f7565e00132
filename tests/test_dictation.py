"""Tests for DictationController."""

import asyncio

import pytest

from livevision.config import DictationSettings
from livevision.dictation.base import DictationEvent
from livevision.dictation.controller import DictationController
from livevision.mocks import MockDictationCapability
from livevision.models.session import DictationState, Session


class TestSupport:

    @pytest.mark.asyncio
    async def test_unsupported_toggle_is_noop(self, session):
        capability = MockDictationCapability(supported=False)
        controller = DictationController(session, capability)

        await controller.toggle()

        assert not controller.supported
        assert capability.sessions == []
        assert session.dictation_state == DictationState.IDLE

    @pytest.mark.asyncio
    async def test_missing_capability_is_unsupported(self, session):
        controller = DictationController(session, None)

        await controller.toggle()

        assert not controller.supported
        assert session.dictation_state == DictationState.IDLE

    def test_disabled_in_settings(self, session, dictation_capability):
        controller = DictationController(
            session,
            dictation_capability,
            DictationSettings(enabled=False),
        )

        assert not controller.supported

    @pytest.mark.asyncio
    async def test_availability_checked_once(self, dictation, dictation_capability):
        await dictation.toggle()
        await dictation.toggle()
        await dictation.toggle()

        assert dictation_capability.availability_checks == 1

    @pytest.mark.asyncio
    async def test_session_started_with_configured_options(self, dictation, dictation_capability):
        await dictation.toggle()

        assert dictation_capability.start_args == [("es-ES", False, True)]


class TestTranscription:

    @pytest.mark.asyncio
    async def test_final_segments_joined_with_space(self, dictation, dictation_capability, session):
        await dictation.toggle()
        assert session.dictation_state == DictationState.LISTENING

        dsession = dictation_capability.last_session
        dsession.emit_final("hola")
        dsession.emit_final("mundo")
        await dictation.stop()

        assert session.text_buffer == "hola mundo"
        assert session.dictation_state == DictationState.IDLE

    @pytest.mark.asyncio
    async def test_appends_to_existing_text(self, dictation, dictation_capability, session):
        session.text_buffer = "Describe"
        await dictation.toggle()

        dictation_capability.last_session.emit_final(" the table ")
        await dictation.stop()

        assert session.text_buffer == "Describe the table"

    @pytest.mark.asyncio
    async def test_blank_final_is_ignored(self, dictation, dictation_capability, session):
        await dictation.toggle()

        dictation_capability.last_session.emit_final("   ")
        await dictation.stop()

        assert session.text_buffer == ""

    @pytest.mark.asyncio
    async def test_partials_are_not_committed(self, dictation, dictation_capability, session, wait_until):
        await dictation.toggle()

        dictation_capability.last_session.emit_partial("hol")
        await wait_until(lambda: session.interim_text == "hol")
        assert session.text_buffer == ""

        await dictation.stop()

        assert session.text_buffer == ""
        assert session.interim_text == ""

    @pytest.mark.asyncio
    async def test_final_replaces_interim(self, dictation, dictation_capability, session, wait_until):
        await dictation.toggle()
        dsession = dictation_capability.last_session

        dsession.emit_partial("que v")
        dsession.emit_final("que ves")
        await wait_until(lambda: session.text_buffer == "que ves")

        assert session.interim_text == ""
        await dictation.stop()

    @pytest.mark.asyncio
    async def test_end_of_utterance_returns_to_idle(self, session, wait_until):
        capability = MockDictationCapability(script=[
            DictationEvent.partial("what"),
            DictationEvent.final("what is this"),
            DictationEvent.end(),
        ])
        controller = DictationController(session, capability)

        await controller.toggle()
        await wait_until(lambda: session.dictation_state == DictationState.IDLE)

        assert session.text_buffer == "what is this"

    @pytest.mark.asyncio
    async def test_operator_edit_between_segments(self, dictation, dictation_capability, session, wait_until):
        await dictation.toggle()
        dsession = dictation_capability.last_session

        dsession.emit_final("first")
        await wait_until(lambda: session.text_buffer == "first")
        session.text_buffer = "edited"
        dsession.emit_final("second")
        await dictation.stop()

        assert session.text_buffer == "edited second"


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_toggle_stops_listening(self, dictation, dictation_capability, session):
        await dictation.toggle()
        await dictation.toggle()

        assert session.dictation_state == DictationState.IDLE
        assert dictation_capability.last_session.stopped

    @pytest.mark.asyncio
    async def test_toggle_again_starts_new_session(self, dictation, dictation_capability, session):
        await dictation.toggle()
        await dictation.toggle()
        await dictation.toggle()

        assert len(dictation_capability.sessions) == 2
        assert session.dictation_state == DictationState.LISTENING
        await dictation.stop()

    @pytest.mark.asyncio
    async def test_engine_error_returns_to_idle(self, dictation, dictation_capability, session, wait_until):
        session.text_buffer = "kept"
        await dictation.toggle()
        dsession = dictation_capability.last_session

        dsession.emit_error("network")
        await wait_until(lambda: session.dictation_state == DictationState.IDLE)

        assert dsession.stopped
        assert session.text_buffer == "kept"

    @pytest.mark.asyncio
    async def test_start_failure_stays_idle(self, session, dictation_capability):
        async def failing_start(locale, continuous, interim):
            raise RuntimeError("microphone unavailable")

        dictation_capability.start = failing_start
        controller = DictationController(session, dictation_capability)

        await controller.toggle()

        assert session.dictation_state == DictationState.IDLE
        assert controller._active is None

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_noop(self, dictation, dictation_capability):
        await dictation.stop()

        assert dictation_capability.sessions == []

    @pytest.mark.asyncio
    async def test_idle_notified_once_per_session(self, session, dictation_capability):
        states = []
        controller = DictationController(
            session,
            dictation_capability,
            on_change=lambda: states.append(session.dictation_state),
        )

        await controller.toggle()
        dsession = dictation_capability.last_session
        dsession.emit_error("aborted")
        await controller.stop()

        assert states.count(DictationState.LISTENING) == 1
        assert states[-1] == DictationState.IDLE
        assert states.count(DictationState.IDLE) == 1

    @pytest.mark.asyncio
    async def test_does_not_touch_other_fields(self, dictation_capability):
        session = Session(credential="k")
        controller = DictationController(session, dictation_capability)

        await controller.toggle()
        dictation_capability.last_session.emit_final("hello")
        await controller.stop()

        assert session.text_buffer == "hello"
        assert session.still_payload is None
        assert session.credential == "k"


class TestSlowStart:

    @pytest.mark.asyncio
    async def test_concurrent_toggles_start_one_session(self, session):
        capability = MockDictationCapability(start_delay=0.02)
        controller = DictationController(session, capability)

        await asyncio.gather(controller.toggle(), controller.toggle())

        assert len(capability.start_args) == 1
        assert len(capability.sessions) == 1
        assert session.dictation_state == DictationState.LISTENING
        await controller.stop()

    @pytest.mark.asyncio
    async def test_stop_while_starting_stays_idle(self, session):
        capability = MockDictationCapability(start_delay=0.02)
        controller = DictationController(session, capability)

        toggling = asyncio.create_task(controller.toggle())
        await asyncio.sleep(0)
        await controller.stop()
        await toggling

        assert session.dictation_state == DictationState.IDLE
        assert capability.last_session.stopped
        assert controller._task is None

    @pytest.mark.asyncio
    async def test_toggle_after_close_is_ignored(self, session, dictation_capability):
        controller = DictationController(session, dictation_capability)

        await controller.close()
        await controller.toggle()

        assert dictation_capability.sessions == []
        assert session.dictation_state == DictationState.IDLE
