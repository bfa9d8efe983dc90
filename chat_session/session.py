"""
Conversational session state machine.

States: IDLE -> WAITING -> LOADING -> IDLE, and WAITING|LOADING -> IDLE on
cancel or failure. One session per client; at most one exchange in flight.

The session owns the history, the in-progress draft and the per-exchange
cancellation token. Collaborators (chat backend, speech sequencer, transcript
sink) are injected so the state machine can run against fakes.
"""
from __future__ import annotations

import asyncio
import itertools
import time
from enum import Enum
from typing import (
    AsyncContextManager,
    AsyncIterator,
    Callable,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

from logging_setup import get_logger, Component
from observability.events import Component as ObsComponent, EventEmitter, Severity

from .errors import ChatBackendError, ErrorCategory, classify_error, describe_error
from .models import ChatRequest, Role, Turn
from .speech import Playback
from .stream_reader import iter_fragments
from .transcript import ButtonClickEvent, TranscriptEvent, TurnEvent

emitter = EventEmitter(ObsComponent.SESSION_MANAGER)

_exchange_seq = itertools.count(1)


class InteractionState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    LOADING = "loading"


class ChatBackend(Protocol):
    def open_stream(self, request: ChatRequest) -> AsyncContextManager[AsyncIterator[bytes]]:
        ...


class SpeechSequencer(Protocol):
    speaking: bool

    def add_listener(self, callback: Callable[[bool], None]) -> None:
        ...

    async def speak(self, text: str, *, correlation_id: Optional[str] = None) -> Playback:
        ...


class TranscriptSink(Protocol):
    def record(self, event: TranscriptEvent) -> Optional[asyncio.Task]:
        ...


class CancellationToken:
    """Belongs to exactly one exchange. Once cancelled, its exchange may not touch the session."""

    def __init__(self, exchange_id: str):
        self.exchange_id = exchange_id
        self.cancelled = False
        self._task: Optional[asyncio.Task] = None

    def bind(self, task: asyncio.Task) -> None:
        self._task = task

    def cancel(self) -> None:
        self.cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


def _new_exchange_id() -> str:
    return f"exch_{int(time.time() * 1000)}_{next(_exchange_seq)}"


class ChatSession:
    """The per-client conversation: history, draft, interaction state, cancellation."""

    def __init__(
        self,
        session_id: str,
        chat: ChatBackend,
        speech: SpeechSequencer,
        transcript: TranscriptSink,
        *,
        history_length: int = 10,
        follow_up_after_turns: int = 5,
    ):
        if not session_id:
            raise ValueError("session_id is required")
        self.session_id = session_id
        self.history_length = history_length
        self.follow_up_after_turns = follow_up_after_turns

        self._chat = chat
        self._speech = speech
        self._transcript = transcript

        self._history: List[Turn] = []
        self._draft: Optional[str] = None
        self._state = InteractionState.IDLE
        self._exchange: Optional[CancellationToken] = None
        self._listeners: List[Callable[["ChatSession"], None]] = []

        self.logger = get_logger(Component.SESSION_MANAGER, session_id=session_id)
        speech.add_listener(lambda _speaking: self._publish())

    # --- Observable state ---

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def draft(self) -> Optional[str]:
        return self._draft

    @property
    def history(self) -> Tuple[Turn, ...]:
        return tuple(self._history)

    @property
    def speaking(self) -> bool:
        return self._speech.speaking

    @property
    def follow_up_due(self) -> bool:
        """True once enough assistant turns happened to offer more information."""
        assistant_turns = sum(1 for t in self._history if t.role is Role.ASSISTANT)
        return assistant_turns >= self.follow_up_after_turns

    def add_listener(self, callback: Callable[["ChatSession"], None]) -> None:
        """Called with the session after every observable change."""
        self._listeners.append(callback)

    def _publish(self) -> None:
        for callback in list(self._listeners):
            try:
                callback(self)
            except Exception:
                # A broken renderer must not break the exchange
                self.logger.exception("Session listener failed")

    def transition_to(self, new_state: InteractionState) -> InteractionState:
        """Returns the previous state."""
        old_state = self._state
        self._state = new_state
        if old_state is not new_state:
            self.logger.debug("State changed", old_state=old_state.value, new_state=new_state.value)
        return old_state

    # --- Operations ---

    async def send(self, text: str, history_snapshot: Optional[Sequence[Turn]] = None) -> bool:
        """
        Start one exchange and return once it is over (including playback).

        Returns False without touching anything when an exchange is in flight
        or the assistant is still speaking. history_snapshot is the caller's
        view of the conversation used for the outbound window; it defaults to
        the session history.
        """
        # Check-and-set below runs without suspension
        if self._state is not InteractionState.IDLE or self.speaking:
            self.logger.info("Send rejected", state=self._state.value, speaking=self.speaking)
            emitter.emit(
                "send.rejected",
                session_id=self.session_id,
                state=self._state.value,
                speaking=self.speaking,
            )
            return False

        if self._exchange is not None:
            self._exchange.cancel()
        token = CancellationToken(_new_exchange_id())
        self._exchange = token

        snapshot = list(self._history if history_snapshot is None else history_snapshot)
        user_turn = Turn(Role.USER, text)
        self._history.append(user_turn)
        self._draft = ""
        self.transition_to(InteractionState.WAITING)
        self._publish()

        request = ChatRequest.from_history([*snapshot, user_turn], self.history_length)
        self.logger.debug_pii("User turn appended", content=text)
        emitter.emit(
            "exchange.started",
            session_id=self.session_id,
            correlation_id=token.exchange_id,
            history_window=len(request.messages),
        )
        self._transcript.record(TurnEvent(Role.USER, text, self.session_id))

        task = asyncio.create_task(self._run_exchange(token, request))
        token.bind(task)
        try:
            await task
        except asyncio.CancelledError:
            if not token.cancelled:
                raise
        return True

    def cancel(self) -> bool:
        """
        Abort the exchange in flight.

        A non-empty draft is kept as a user-role turn (the interrupted
        thought). Returns False when there is nothing to cancel.
        """
        if self._state is InteractionState.IDLE:
            return False

        token = self._exchange
        self._exchange = None
        if token is not None:
            token.cancel()

        interrupted = self._draft
        self._draft = None
        if interrupted:
            self._history.append(Turn(Role.USER, interrupted))

        self.transition_to(InteractionState.IDLE)
        self.logger.info("Exchange cancelled", draft_length=len(interrupted or ""))
        emitter.emit(
            "exchange.cancelled",
            session_id=self.session_id,
            correlation_id=token.exchange_id if token else None,
            draft_length=len(interrupted or ""),
        )
        self._publish()
        return True

    def clear(self) -> None:
        """Empty the history. The session identifier is untouched."""
        turns = len(self._history)
        self._history.clear()
        if self._state is InteractionState.IDLE:
            self._draft = None
        self.logger.info("History cleared", turns=turns)
        emitter.emit("history.cleared", session_id=self.session_id, turns=turns)
        self._publish()

    def record_button_click(self, label: str) -> None:
        """Log a UI button answer (e.g. the follow-up offer) to the transcript store."""
        self._transcript.record(ButtonClickEvent(self.session_id, label))

    # --- Exchange internals ---

    async def _run_exchange(self, token: CancellationToken, request: ChatRequest) -> None:
        try:
            try:
                text = await self._stream_reply(token, request)
            except ChatBackendError as e:
                if not token.cancelled:
                    self._report_failure(token, e)
                return
            except Exception as e:
                if not token.cancelled:
                    self._report_failure(token, e, unexpected=True)
                return

            if token.cancelled:
                return

            self._history.append(Turn(Role.ASSISTANT, text))
            self._draft = None
            self._publish()
            self.logger.debug_pii("Assistant turn appended", content=text)
            emitter.emit(
                "exchange.completed",
                session_id=self.session_id,
                correlation_id=token.exchange_id,
                text_length=len(text),
            )
            self._transcript.record(TurnEvent(Role.ASSISTANT, text, self.session_id))

            if text.strip():
                playback = await self._speech.speak(text, correlation_id=token.exchange_id)
                await playback.wait()
        finally:
            self._release(token)

    async def _stream_reply(self, token: CancellationToken, request: ChatRequest) -> str:
        """Accumulate fragments into the draft; returns the full reply text."""
        t_start = time.perf_counter()
        async with self._chat.open_stream(request) as chunks:
            async for fragment in iter_fragments(
                chunks, session_id=self.session_id, correlation_id=token.exchange_id
            ):
                if token.cancelled:
                    break
                if self._state is InteractionState.WAITING:
                    self.transition_to(InteractionState.LOADING)
                    emitter.emit(
                        "exchange.first_fragment",
                        session_id=self.session_id,
                        correlation_id=token.exchange_id,
                        latency_ms=int((time.perf_counter() - t_start) * 1000),
                    )
                self._draft = (self._draft or "") + fragment
                self._publish()
        return self._draft or ""

    def _report_failure(self, token: CancellationToken, error: Exception, unexpected: bool = False) -> None:
        category = ErrorCategory.UNKNOWN if unexpected else classify_error(error)
        status = getattr(error, "status", None)
        log = self.logger.exception if unexpected else self.logger.warning
        log(
            "Exchange failed",
            correlation_id=token.exchange_id,
            category=category,
            status=status,
            error=describe_error(error),
            error_type=type(error).__name__,
        )
        emitter.emit(
            "exchange.failed",
            session_id=self.session_id,
            severity=Severity.ERROR if unexpected else Severity.WARN,
            correlation_id=token.exchange_id,
            category=category,
            status=status,
        )

    def _release(self, token: CancellationToken) -> None:
        """Back to IDLE, unless cancel() or a newer exchange already took over."""
        if self._exchange is not token:
            return
        self._exchange = None
        self._draft = None
        self.transition_to(InteractionState.IDLE)
        self._publish()
