"""
Tests for the streaming response reader.

Verifies:
- Lines split across chunks and several lines per chunk
- Multi-byte characters split across chunks
- Absent/null content skipped
- Malformed lines reported and skipped, stream continues
"""
import json

import pytest

from chat_session.stream_reader import decode_line, extract_content, iter_fragments
from observability.event_store import event_store


@pytest.fixture(autouse=True)
def cleanup():
    yield
    event_store.clear()


def _line(content) -> str:
    return json.dumps({"choices": [{"delta": {"content": content}}]}, ensure_ascii=False) + "\n"


async def _chunks(*parts):
    for part in parts:
        yield part


async def _collect(chunks, **kwargs) -> list[str]:
    return [fragment async for fragment in iter_fragments(chunks, **kwargs)]


class TestExtractContent:

    def test_nested_path(self):
        assert extract_content({"choices": [{"delta": {"content": "BMW "}}]}) == "BMW "

    @pytest.mark.parametrize("payload", [
        {},
        {"choices": []},
        {"choices": [{"delta": {}}]},
        {"choices": [{"delta": {"content": None}}]},
        {"choices": [{"delta": {"content": ""}}]},
        {"choices": [{"finish_reason": "stop"}]},
        {"choices": "nope"},
        ["not", "an", "object"],
    ])
    def test_missing_content_is_none(self, payload):
        assert extract_content(payload) is None


class TestDecodeLine:

    def test_blank(self):
        assert decode_line("   ") is None

    def test_sse_framing(self):
        assert decode_line('data: {"choices": [{"delta": {"content": "hi"}}]}') == "hi"

    def test_done_sentinel(self):
        assert decode_line("data: [DONE]") is None

    def test_malformed_raises(self):
        with pytest.raises(json.JSONDecodeError):
            decode_line('{"choices": [')

    def test_oversized_int_raises_value_error(self):
        with pytest.raises(ValueError):
            decode_line("1" * 5000)


@pytest.mark.asyncio
async def test_one_line_per_chunk():
    fragments = await _collect(_chunks(
        _line("BMW ").encode(), _line("offers ").encode(), _line("several models.").encode()
    ))
    assert fragments == ["BMW ", "offers ", "several models."]


@pytest.mark.asyncio
async def test_several_lines_in_one_chunk():
    body = (_line("BMW ") + _line("offers ") + _line("several models.")).encode()
    assert await _collect(_chunks(body)) == ["BMW ", "offers ", "several models."]


@pytest.mark.asyncio
async def test_arbitrary_split_points():
    body = (_line("BMW ") + _line(None) + _line("offers ") + "\n" + _line("several models.")).encode()
    expected = ["BMW ", "offers ", "several models."]

    for size in (1, 2, 3, 7, 13, len(body) - 1):
        parts = [body[i:i + size] for i in range(0, len(body), size)]
        assert await _collect(_chunks(*parts)) == expected, f"chunk size {size}"


@pytest.mark.asyncio
async def test_multibyte_character_split_across_chunks():
    body = _line("Größe €").encode("utf-8")
    euro_start = body.index("€".encode("utf-8"))
    parts = [body[:euro_start + 1], body[euro_start + 1:]]

    assert await _collect(_chunks(*parts)) == ["Größe €"]


@pytest.mark.asyncio
async def test_trailing_line_without_newline():
    body = (_line("BMW ") + _line("offers").rstrip("\n")).encode()
    assert await _collect(_chunks(body)) == ["BMW ", "offers"]


@pytest.mark.asyncio
async def test_str_chunks_accepted():
    assert await _collect(_chunks(_line("a"), _line("b"))) == ["a", "b"]


@pytest.mark.asyncio
async def test_malformed_line_is_skipped_and_reported(capsys):
    body = (_line("BMW ") + '{"choices": [\n' + _line("offers")).encode()

    fragments = await _collect(_chunks(body), session_id="sess_1", correlation_id="exch_1")

    assert fragments == ["BMW ", "offers"]
    events = event_store.query(event_type="stream.fragment_malformed")
    assert len(events) == 1
    assert events[0]["correlation_id"] == "exch_1"
    assert events[0]["line_no"] == 2
    assert events[0]["category"] == "malformed_fragment"


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_line", [
    "1" * 5000,          # int longer than the str->int digit limit
    "[" * 100000,        # nesting deeper than the recursion limit
    '{"choices": [',     # truncated JSON
])
async def test_undecodable_lines_do_not_end_the_stream(bad_line):
    body = (_line("BMW ") + bad_line + "\n" + _line("rocks")).encode()

    fragments = await _collect(_chunks(body), session_id="sess_1")

    assert fragments == ["BMW ", "rocks"]
    assert event_store.query(event_type="stream.fragment_malformed")[0]["line_no"] == 2


@pytest.mark.asyncio
async def test_empty_stream():
    assert await _collect(_chunks()) == []


@pytest.mark.asyncio
async def test_lazy():
    """Fragments are produced as chunks arrive, not after the stream ends."""
    pulled: list[int] = []

    async def chunks():
        for i, content in enumerate(("a", "b", "c")):
            pulled.append(i)
            yield _line(content).encode()

    reader = iter_fragments(chunks())
    assert await reader.__anext__() == "a"
    assert pulled == [0]
    await reader.aclose()
