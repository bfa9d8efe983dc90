"""
Error taxonomy for the chat session.

Failures are mapped to stable categories for diagnostic events. None of them
escalate beyond the current exchange: the session must stay usable.
"""
import asyncio
import json
from typing import Optional

import aiohttp


class ChatSessionError(Exception):
    """Base class for chat session errors."""


class ChatBackendError(ChatSessionError):
    """The chat exchange failed to start or broke off (status, missing body, transport)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class SpeechBackendError(ChatSessionError):
    """The speech backend returned an error or an unusable audio payload."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PlaybackError(ChatSessionError):
    """Audio could not be decoded or playback could not start."""


class IdentityStoreError(ChatSessionError):
    """Durable client state could not be read or written."""


class ErrorCategory:
    """Stable error categories used in diagnostic events."""

    TRANSPORT_FAILURE = "transport_failure"
    NON_SUCCESS_RESPONSE = "non_success_response"
    MALFORMED_FRAGMENT = "malformed_fragment"
    LOGGING_FAILURE = "logging_failure"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    PLAYBACK_FAILURE = "playback_failure"
    UNKNOWN = "unknown"


def classify_error(error: BaseException) -> str:
    """Classify a failure into a stable category. Never raises."""
    status = getattr(error, "status", None)
    if isinstance(error, (ChatBackendError, SpeechBackendError)) and status is not None:
        return ErrorCategory.NON_SUCCESS_RESPONSE

    if isinstance(error, aiohttp.ClientResponseError):
        return ErrorCategory.NON_SUCCESS_RESPONSE

    if isinstance(error, (ChatBackendError, SpeechBackendError)):
        # No status: the request never produced a usable response
        return ErrorCategory.TRANSPORT_FAILURE

    if isinstance(error, (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError)):
        return ErrorCategory.TRANSPORT_FAILURE

    if isinstance(error, json.JSONDecodeError):
        return ErrorCategory.MALFORMED_FRAGMENT

    if isinstance(error, PlaybackError):
        return ErrorCategory.PLAYBACK_FAILURE

    if isinstance(error, (IdentityStoreError, OSError)):
        return ErrorCategory.STORAGE_UNAVAILABLE

    return ErrorCategory.UNKNOWN


def describe_error(error: BaseException) -> str:
    """Short error detail for logs, with anything that looks like a secret redacted."""
    detail = str(error) or type(error).__name__
    lowered = detail.lower()
    if "secret" in lowered or "password" in lowered or "api_key" in lowered or "token" in lowered:
        return "[redacted: potential secret]"
    return detail[:300]
