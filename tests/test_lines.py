from __future__ import annotations

import io
import re

import pytest

from cliprun.lines import LineSplitter, pump_stream, split_lines


def test_carriage_return_progress_yields_one_event_per_update() -> None:
    lines = split_lines("progress 10%\rprogress 20%\rprogress 30%\n")

    assert lines == ["progress 10%", "progress 20%", "progress 30%"]


def test_crlf_and_repeated_boundaries_do_not_emit_empty_lines() -> None:
    lines = split_lines("one\r\ntwo\r\r\r\nthree\n\n\nfour")

    assert lines == ["one", "two", "three", "four"]


def test_unterminated_tail_is_flushed_only_on_flush() -> None:
    seen: list[str] = []
    splitter = LineSplitter(seen.append)

    splitter.feed("first\nsecond partial")
    assert seen == ["first"]

    splitter.flush()
    assert seen == ["first", "second partial"]

    splitter.flush()
    assert seen == ["first", "second partial"]


def test_lines_spanning_chunks_are_joined() -> None:
    seen: list[str] = []
    splitter = LineSplitter(seen.append)

    for ch in "abc\r\ndef\rgh":
        splitter.feed(ch)
    splitter.flush()

    assert seen == ["abc", "def", "gh"]


@pytest.mark.parametrize(
    "text",
    [
        "",
        "\r\n\r\n",
        "plain",
        "\nleading and trailing\r",
        "a\rb\nc\r\nd\n\re",
        "[download]  1.0%\r[download] 50.0%\r[download] 100%\n[Merger] done\n",
    ],
)
def test_rejoined_lines_equal_normalized_input(text: str) -> None:
    expected = re.sub(r"[\r\n]+", "\n", text).strip("\n")

    assert "\n".join(split_lines(text)) == expected
    assert "" not in split_lines(text)


def test_pump_stream_decodes_multibyte_characters_split_across_reads() -> None:
    payload = "naïve – ünïcode\rnext\n".encode("utf-8")

    class TrickleStream(io.BytesIO):
        def read1(self, size: int = -1) -> bytes:
            return super().read1(1)

    seen: list[str] = []
    pump_stream(TrickleStream(payload), seen.append)

    assert seen == ["naïve – ünïcode", "next"]


def test_pump_stream_replaces_undecodable_bytes() -> None:
    seen: list[str] = []
    pump_stream(io.BytesIO(b"bad \xff byte"), seen.append)

    assert seen == ["bad � byte"]
