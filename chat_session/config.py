"""
Chat session configuration.

Loads backend endpoints and tuning values from environment variables.
.env_local / .env.local are loaded first (local dev convenience); they never
override variables that are already exported.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv

_N = TypeVar("_N", int, float)

DEFAULT_STATE_PATH = str(Path.home() / ".voice_chat_demo" / "client_state.json")


def _env_number(key: str, parse: Callable[[str], _N], default: _N) -> _N:
    """
    Numeric env var with inline comments tolerated ("300  # ms" -> 300).

    Unset, empty or unparsable values give the default.
    """
    raw = os.environ.get(key, "").partition("#")[0].strip()
    if not raw:
        return default
    try:
        return parse(raw)
    except ValueError:
        return default


def _parse_int_env(key: str, default: int) -> int:
    return _env_number(key, int, default)


def _parse_float_env(key: str, default: float) -> float:
    return _env_number(key, float, default)


def load_env_files(root: Optional[Path] = None) -> None:
    """Best-effort load of local env files; existing variables win."""
    root = root or Path(__file__).parent.parent
    for name in (".env_local", ".env.local"):
        p = root / name
        if p.exists():
            load_dotenv(p, override=False)


@dataclass
class ChatConfig:
    """Chat session configuration."""

    # Backend base URL (chat, speech and log endpoints hang off it)
    base_url: str

    chat_path: str = "/api/chat"
    tts_path: str = "/.netlify/functions/tts"
    log_messages_path: str = "/.netlify/functions/logMessages"
    log_button_path: str = "/.netlify/functions/logButton"

    # Max turns sent upstream; older turns stay in the displayed history
    history_length: int = 10
    debounce_ms: int = 300

    chat_timeout_seconds: float = 60.0
    log_timeout_seconds: float = 5.0

    # Durable client-side storage for the session identifier
    state_path: str = DEFAULT_STATE_PATH

    scenario: str = "default"

    # Assistant turns before the front-end offers more information
    follow_up_after_turns: int = 5

    log_level: str = "INFO"

    @property
    def chat_url(self) -> str:
        return self.base_url + self.chat_path

    @property
    def tts_url(self) -> str:
        return self.base_url + self.tts_path

    @property
    def log_messages_url(self) -> str:
        return self.base_url + self.log_messages_path

    @property
    def log_button_url(self) -> str:
        return self.base_url + self.log_button_path

    @classmethod
    def from_env(cls) -> "ChatConfig":
        """Load configuration from environment variables."""
        return cls(
            base_url=os.environ["CHAT_BASE_URL"].rstrip("/"),
            chat_path=os.environ.get("CHAT_API_PATH", "/api/chat"),
            tts_path=os.environ.get("TTS_API_PATH", "/.netlify/functions/tts"),
            log_messages_path=os.environ.get("LOG_MESSAGES_PATH", "/.netlify/functions/logMessages"),
            log_button_path=os.environ.get("LOG_BUTTON_PATH", "/.netlify/functions/logButton"),
            history_length=_parse_int_env("HISTORY_LENGTH", default=10),
            debounce_ms=_parse_int_env("DEBOUNCE_MS", default=300),
            chat_timeout_seconds=_parse_float_env("CHAT_REQUEST_TIMEOUT_SECONDS", 60.0),
            log_timeout_seconds=_parse_float_env("LOG_REQUEST_TIMEOUT_SECONDS", 5.0),
            state_path=os.environ.get("CHAT_STATE_PATH") or DEFAULT_STATE_PATH,
            scenario=os.environ.get("CHAT_SCENARIO", "default"),
            follow_up_after_turns=_parse_int_env("FOLLOW_UP_AFTER_TURNS", default=5),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )


_config: Optional[ChatConfig] = None


def get_config() -> ChatConfig:
    """Process-wide config, read from the environment on first use."""
    global _config
    if _config is None:
        load_env_files()
        _config = ChatConfig.from_env()
    return _config
