"""
Terminal front-end for the chat session.

Usage:
    python -m chat_session

Type a message and press enter. Commands:
    /sample N   send sample phrase N
    /cancel     interrupt the reply in progress
    /clear      start over with an empty history
    /yes, /no   answer the follow-up offer
    /quit       exit

The reply renders on stdout as it streams; logs and diagnostic events go to stderr.
"""
import asyncio
import sys

from logging_setup import setup_logging, get_logger, Component
from observability.events import configure_event_output

from .audio_player import SoundDeviceAudioPlayer
from .chat_client import ChatClient
from .config import get_config
from .debounce import Debouncer
from .identity import get_session_id
from .prompts import get_scenario
from .session import ChatSession
from .speech import SpeechClient, SpeechPlaybackSequencer
from .terminal import TerminalRenderer, print_welcome, submit
from .transcript import TranscriptLogger

logger = get_logger(Component.CLI)


async def run() -> None:
    config = get_config()
    setup_logging(level=config.log_level, use_json=True)
    configure_event_output(sys.stderr)

    scenario = get_scenario(config.scenario)
    session_id = get_session_id(config.state_path)

    chat = ChatClient(config.chat_url, read_timeout_seconds=config.chat_timeout_seconds)
    speech_client = SpeechClient(config.tts_url)
    speech = SpeechPlaybackSequencer(speech_client, SoundDeviceAudioPlayer(), session_id=session_id)
    transcript = TranscriptLogger(
        config.log_messages_url,
        config.log_button_url,
        timeout_seconds=config.log_timeout_seconds,
    )
    session = ChatSession(
        session_id,
        chat,
        speech,
        transcript,
        history_length=config.history_length,
        follow_up_after_turns=config.follow_up_after_turns,
    )
    session.add_listener(TerminalRenderer(scenario.assistant_name))
    send = Debouncer(session.send, config.debounce_ms)

    logger.info("Chat session ready", session_id=session_id, scenario=scenario.name)
    print_welcome(scenario)

    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            text = line.strip()
            if not text:
                continue

            if text == "/quit":
                break
            elif text == "/cancel":
                session.cancel()
            elif text == "/clear":
                session.clear()
            elif text in ("/yes", "/no"):
                session.record_button_click("Yes" if text == "/yes" else "No")
            elif text.startswith("/sample"):
                _, _, index = text.partition(" ")
                try:
                    phrase = scenario.sample_phrases[int(index) - 1]
                except (ValueError, IndexError):
                    print(f"No sample phrase {index!r}")
                    continue
                submit(session, send, phrase, echo=True)
            else:
                submit(session, send, text)
    finally:
        session.cancel()
        await transcript.aclose()
        await chat.aclose()
        await speech_client.aclose()


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
