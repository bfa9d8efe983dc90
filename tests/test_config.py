"""
Tests for chat session configuration.

Verifies:
- Configuration loading from environment
- Required fields validation
- Default values and derived endpoint URLs
"""
import pytest

from chat_session.config import ChatConfig, DEFAULT_STATE_PATH, _parse_int_env

_OPTIONAL = (
    "CHAT_API_PATH", "TTS_API_PATH", "LOG_MESSAGES_PATH", "LOG_BUTTON_PATH",
    "HISTORY_LENGTH", "DEBOUNCE_MS", "CHAT_REQUEST_TIMEOUT_SECONDS",
    "LOG_REQUEST_TIMEOUT_SECONDS", "CHAT_STATE_PATH", "CHAT_SCENARIO",
    "FOLLOW_UP_AFTER_TURNS", "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in _OPTIONAL:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_config_from_env_all_fields(clean_env):
    clean_env.setenv("CHAT_BASE_URL", "https://chat.example.com/")
    clean_env.setenv("CHAT_API_PATH", "/v1/chat")
    clean_env.setenv("TTS_API_PATH", "/v1/tts")
    clean_env.setenv("LOG_MESSAGES_PATH", "/v1/log")
    clean_env.setenv("LOG_BUTTON_PATH", "/v1/button")
    clean_env.setenv("HISTORY_LENGTH", "6")
    clean_env.setenv("DEBOUNCE_MS", "500")
    clean_env.setenv("CHAT_REQUEST_TIMEOUT_SECONDS", "12.5")
    clean_env.setenv("CHAT_STATE_PATH", "/tmp/state.json")
    clean_env.setenv("CHAT_SCENARIO", "showroom")
    clean_env.setenv("FOLLOW_UP_AFTER_TURNS", "3")

    config = ChatConfig.from_env()

    assert config.chat_url == "https://chat.example.com/v1/chat"
    assert config.tts_url == "https://chat.example.com/v1/tts"
    assert config.log_messages_url == "https://chat.example.com/v1/log"
    assert config.log_button_url == "https://chat.example.com/v1/button"
    assert config.history_length == 6
    assert config.debounce_ms == 500
    assert config.chat_timeout_seconds == 12.5
    assert config.state_path == "/tmp/state.json"
    assert config.scenario == "showroom"
    assert config.follow_up_after_turns == 3


def test_config_from_env_defaults(clean_env):
    clean_env.setenv("CHAT_BASE_URL", "http://localhost:8888")

    config = ChatConfig.from_env()

    assert config.chat_url == "http://localhost:8888/api/chat"
    assert config.tts_url == "http://localhost:8888/.netlify/functions/tts"
    assert config.log_messages_url == "http://localhost:8888/.netlify/functions/logMessages"
    assert config.log_button_url == "http://localhost:8888/.netlify/functions/logButton"
    assert config.history_length == 10
    assert config.debounce_ms == 300
    assert config.state_path == DEFAULT_STATE_PATH
    assert config.scenario == "default"
    assert config.follow_up_after_turns == 5


def test_config_missing_base_url(clean_env):
    clean_env.delenv("CHAT_BASE_URL", raising=False)

    with pytest.raises(KeyError):
        ChatConfig.from_env()


@pytest.mark.parametrize("raw, expected", [
    ("300  # comment", 300),
    ("42", 42),
    ("", 7),
    ("# only comment", 7),
    ("abc", 7),
])
def test_parse_int_env(monkeypatch, raw, expected):
    monkeypatch.setenv("SOME_INT", raw)
    assert _parse_int_env("SOME_INT", default=7) == expected


def test_parse_int_env_missing(monkeypatch):
    monkeypatch.delenv("SOME_INT", raising=False)
    assert _parse_int_env("SOME_INT", default=7) == 7
