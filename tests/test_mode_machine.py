"""Tests for pixelai.services.mode_machine."""

import pytest

from config import MODE_SYSTEM_PROMPTS
from pixelai.models import Mode
from pixelai.services.mode_machine import TRANSITIONS, Action, Effect, ModeStateMachine

CONVERSATION_MODES = [Mode.CHAT, Mode.IMAGE, Mode.STUDY]


class TestTransitionTable:
    def test_every_combination_is_listed(self):
        for source in Mode:
            for action in (Action.SELECT, Action.START_NEW):
                for target in Mode:
                    assert (source, action, target) in TRANSITIONS
            assert TRANSITIONS[(source, Action.BACK, Mode.CHAT)] is Effect.PRESERVE

    def test_only_start_new_between_different_conversation_modes_clears(self):
        clearing = {key for key, effect in TRANSITIONS.items() if effect is Effect.CLEAR}
        expected = {
            (source, Action.START_NEW, target)
            for source in CONVERSATION_MODES
            for target in CONVERSATION_MODES
            if source is not target
        }
        assert clearing == expected


class TestModeStateMachine:
    def test_starts_in_chat(self):
        assert ModeStateMachine().current is Mode.CHAT

    @pytest.mark.parametrize("target", [Mode.IMAGE, Mode.STUDY])
    def test_start_new_from_chat_clears(self, target):
        transition = ModeStateMachine().start_new(target)
        assert transition.clears is True
        assert transition.source is Mode.CHAT
        assert transition.target is target

    def test_start_new_same_mode_preserves(self):
        machine = ModeStateMachine(Mode.STUDY)
        assert machine.start_new(Mode.STUDY).clears is False

    def test_select_never_clears(self):
        machine = ModeStateMachine()
        for target in [Mode.IMAGE, Mode.STUDY, Mode.SETTINGS, Mode.CHAT]:
            assert machine.select(target).clears is False
            assert machine.current is target

    def test_settings_round_trip_preserves(self):
        machine = ModeStateMachine(Mode.IMAGE)
        assert machine.start_new(Mode.SETTINGS).clears is False
        assert machine.current is Mode.SETTINGS
        back = machine.back_to_chat()
        assert back.clears is False
        assert machine.current is Mode.CHAT

    def test_start_new_from_settings_preserves(self):
        machine = ModeStateMachine()
        machine.select(Mode.SETTINGS)
        assert machine.start_new(Mode.STUDY).clears is False

    def test_system_prompt_follows_mode(self):
        machine = ModeStateMachine()
        assert machine.system_prompt() == MODE_SYSTEM_PROMPTS["chat"]
        machine.select(Mode.STUDY)
        assert machine.system_prompt() == MODE_SYSTEM_PROMPTS["study"]

    def test_settings_uses_last_conversation_prompt(self):
        machine = ModeStateMachine()
        machine.select(Mode.IMAGE)
        machine.select(Mode.SETTINGS)
        assert machine.conversation_mode is Mode.IMAGE
        assert machine.system_prompt() == MODE_SYSTEM_PROMPTS["image"]

    def test_reset(self):
        machine = ModeStateMachine(Mode.STUDY)
        machine.reset()
        assert machine.current is Mode.CHAT
        assert machine.conversation_mode is Mode.CHAT
