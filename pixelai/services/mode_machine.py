"""
MODE STATE MACHINE MODULE
=========================

Tracks the active assistant mode (chat, image, study, settings) and decides,
for every transition, whether the live transcript is cleared or kept.

ACTIONS:
  select     - plain switch from the mode bar (or opening settings). Never clears.
  start_new  - the explicit "new" action ("New chat", "Create image", "Study").
               Clears when entering a conversation mode from a *different*
               conversation mode; re-entering the same mode keeps everything.
  back       - "Back to Chat" from settings. Returns to chat, never clears.

Settings is not a conversation mode: entering or leaving it never touches the
transcript or the history list. The whole table is built once in
TRANSITIONS so every (source, action, target) effect can be looked up.
"""

import logging
from enum import Enum
from typing import Dict, NamedTuple, Tuple, Union

from config import MODE_SYSTEM_PROMPTS
from pixelai.models import Mode

logger = logging.getLogger("PixelAI")


class Action(str, Enum):
    SELECT = "select"
    START_NEW = "start_new"
    BACK = "back"


class Effect(str, Enum):
    CLEAR = "clear"
    PRESERVE = "preserve"


class Transition(NamedTuple):
    source: Mode
    target: Mode
    action: Action
    clears: bool


def _effect(source: Mode, action: Action, target: Mode) -> Effect:
    if action is Action.START_NEW and target.is_conversational:
        if source.is_conversational and source is not target:
            return Effect.CLEAR
    return Effect.PRESERVE


# (source, action, target) -> effect, for every combination.
TRANSITIONS: Dict[Tuple[Mode, Action, Mode], Effect] = {
    (source, action, target): _effect(source, action, target)
    for source in Mode
    for action in (Action.SELECT, Action.START_NEW)
    for target in Mode
}
TRANSITIONS.update({(source, Action.BACK, Mode.CHAT): Effect.PRESERVE for source in Mode})


class ModeStateMachine:
    """Current mode plus the last conversation mode (used while in settings)."""

    def __init__(self, initial: Union[Mode, str] = Mode.CHAT):
        self.current = Mode(initial)
        self.last_conversation_mode = self.current if self.current.is_conversational else Mode.CHAT

    def _apply(self, action: Action, target: Mode) -> Transition:
        source = self.current
        effect = TRANSITIONS[(source, action, target)]
        self.current = target
        if target.is_conversational:
            self.last_conversation_mode = target
        transition = Transition(source, target, action, effect is Effect.CLEAR)
        logger.debug("Mode %s -> %s (%s, %s)", source.value, target.value, action.value, effect.value)
        return transition

    def select(self, target: Union[Mode, str]) -> Transition:
        return self._apply(Action.SELECT, Mode(target))

    def start_new(self, target: Union[Mode, str]) -> Transition:
        return self._apply(Action.START_NEW, Mode(target))

    def back_to_chat(self) -> Transition:
        return self._apply(Action.BACK, Mode.CHAT)

    def reset(self) -> None:
        """Force chat mode without a transition record (new conversation, identity change)."""
        self.current = Mode.CHAT
        self.last_conversation_mode = Mode.CHAT

    @property
    def conversation_mode(self) -> Mode:
        """Mode whose prompt accompanies requests; settings falls back to the last conversation mode."""
        return self.current if self.current.is_conversational else self.last_conversation_mode

    def system_prompt(self) -> str:
        return MODE_SYSTEM_PROMPTS[self.conversation_mode.value]
