"""
Terminal rendering for the chat session: the streaming draft, the welcome
screen and the follow-up offer. No audio imports, so it runs anywhere.
"""
import sys
from typing import Callable, Optional, TextIO

from .prompts import Scenario
from .session import ChatSession, InteractionState

BUSY_NOTICE = "(still answering; /cancel to interrupt)"
FOLLOW_UP_OFFER = "Would you like more information after completing the survey? (/yes or /no)"


class TerminalRenderer:
    """Session listener that prints the growing draft and the follow-up offer."""

    def __init__(self, assistant_name: str, out: Optional[TextIO] = None):
        self._assistant_name = assistant_name
        self._out = out or sys.stdout
        self._shown = 0
        self._offered = False

    def __call__(self, session: ChatSession) -> None:
        draft = session.draft
        if draft:
            if self._shown == 0:
                self._out.write(f"{self._assistant_name}: ")
            self._out.write(draft[self._shown:])
            self._shown = len(draft)
        elif self._shown:
            self._out.write("\n")
            self._shown = 0

        if session.follow_up_due and not self._offered and session.state is InteractionState.IDLE:
            self._offered = True
            self._out.write(FOLLOW_UP_OFFER + "\n")
        if not session.history:
            self._offered = False
        self._out.flush()


def print_welcome(scenario: Scenario, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    out.write(f"{scenario.assistant_name}: {scenario.welcome_text}\n\n")
    for i, phrase in enumerate(scenario.sample_phrases, start=1):
        out.write(f"  /sample {i}  {phrase}\n")
    out.write("\n")
    out.flush()


def submit(
    session: ChatSession,
    send: Callable[[str], object],
    text: str,
    *,
    echo: bool = False,
    out: Optional[TextIO] = None,
) -> bool:
    """
    Hand text to the (debounced) send.

    Returns True only when an exchange will start; "You: ..." is echoed only
    then. A busy session still gets the call, so the rejection is logged.
    """
    out = out or sys.stdout
    busy = session.state is not InteractionState.IDLE or session.speaking
    task = send(text)
    if busy:
        out.write(BUSY_NOTICE + "\n")
        return False
    if task is None:
        return False
    if echo:
        out.write(f"You: {text}\n")
    out.flush()
    return True
