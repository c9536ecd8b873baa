from __future__ import annotations

from cliprun.console import (
    ELLIPSIS,
    INITIAL_SLOT_TEXT,
    RESTORE_CURSOR,
    SAVE_CURSOR,
    ConsoleRenderer,
    StatusBoard,
    display_width,
    fit,
)
from cliprun.state import EngineContext


def test_fit_pads_short_and_truncates_long_text() -> None:
    assert fit("abc", 6) == "abc   "
    assert fit("abcdefgh", 6) == "abcde" + ELLIPSIS
    assert len(fit("x" * 500, 79)) == 79
    assert fit("exact", 5) == "exact"


def test_fit_counts_wide_characters_as_two_columns() -> None:
    title = "[download] 日本語のタイトル 🎬 clip.mp4"

    fitted = fit(title, 20)

    assert display_width(fitted) == 20
    assert fitted.startswith("[download] 日本語")
    assert fitted.rstrip().endswith(ELLIPSIS)
    assert display_width(fit("漢字", 6)) == 6
    assert fit("漢字", 6) == "漢字  "


def test_fit_never_splits_a_wide_character_past_the_edge() -> None:
    fitted = fit("ab漢字", 4)

    assert fitted == "ab" + ELLIPSIS + " "
    assert display_width(fitted) == 4


def test_progress_line_fills_width_minus_one(context: EngineContext, renderer: ConsoleRenderer) -> None:
    renderer.progress(3, "[download] 10%")

    written = context.output.getvalue()
    assert written.startswith("\r[Job #3] [download] 10%")
    assert len(written) == 1 + 79
    assert "\n" not in written
    assert renderer.progress_active


def test_log_closes_progress_line_first(context: EngineContext, renderer: ConsoleRenderer) -> None:
    renderer.progress(1, "[download] 50%")
    renderer.job_log(1, "Exit code: 0")

    written = context.output.getvalue()
    progress, rest = written.split("\n", 1)
    assert progress.rstrip().endswith("[download] 50%")
    assert rest == "[Job #1] Exit code: 0\n"
    assert not renderer.progress_active


def test_end_progress_is_noop_without_active_line(context: EngineContext, renderer: ConsoleRenderer) -> None:
    renderer.end_progress()

    assert context.output.getvalue() == ""
    assert renderer.line_count == 0


def test_errors_go_to_error_stream(context: EngineContext, renderer: ConsoleRenderer) -> None:
    renderer.job_error(2, "boom")

    assert context.error_output.getvalue() == "[Job #2] boom\n"
    assert context.output.getvalue() == ""


def test_line_count_includes_wrapped_lines(renderer: ConsoleRenderer) -> None:
    renderer.log("short")
    renderer.log("y" * 170)

    assert renderer.line_count == 1 + 3


def test_wrapped_line_count_uses_display_width(renderer: ConsoleRenderer) -> None:
    renderer.log("字" * 50)

    assert renderer.line_count == 2


def test_board_prints_heading_once_and_pins_rows(context: EngineContext, renderer: ConsoleRenderer) -> None:
    board = StatusBoard(renderer)

    first = board.add("one")
    renderer.log("a normal log line")
    second = board.add("two")
    third = board.add("three")

    output = context.output.getvalue()
    assert output.count(board.heading) == 1
    rows = [slot.row for slot in board.slots]
    assert rows == sorted(rows)
    assert len(set(rows)) == 3
    log_row = board.slots[0].row + 1
    assert log_row not in rows
    assert (first, second, third) == (0, 1, 2)
    assert board.slots[0].current_text == INITIAL_SLOT_TEXT


def test_board_update_saves_and_restores_cursor(context: EngineContext, renderer: ConsoleRenderer) -> None:
    board = StatusBoard(renderer)
    index = board.add("job")
    before = context.output.getvalue()

    board.update(index, "50%")

    drawn = context.output.getvalue()[len(before):]
    offset = renderer.line_count - board.slots[index].row
    assert drawn.startswith(SAVE_CURSOR + f"\033[{offset}A\r")
    assert drawn.endswith(RESTORE_CURSOR)
    assert "job — 50%" in drawn


def test_completed_slots_are_never_removed(renderer: ConsoleRenderer) -> None:
    board = StatusBoard(renderer)
    indices = [board.add(f"item {n}") for n in range(5)]

    for n, index in enumerate(indices):
        board.complete(index, f"done {n}")
        board.remove(index)

    assert len(board.slots) == 5
    assert [board.text_of(i) for i in indices] == [f"item {n} — done {n}" for n in range(5)]


def test_out_of_range_update_is_ignored(context: EngineContext, renderer: ConsoleRenderer) -> None:
    board = StatusBoard(renderer)
    board.add("only")
    before = context.output.getvalue()

    board.update(5, "nope")
    board.update(-1, "nope")

    assert context.output.getvalue() == before


def test_slot_scrolled_out_of_view_is_skipped_silently(context: EngineContext, renderer: ConsoleRenderer) -> None:
    board = StatusBoard(renderer)
    index = board.add("old")
    for n in range(context.height + 5):
        renderer.log(f"line {n}")
    before = context.output.getvalue()

    board.update(index, "finished")

    assert context.output.getvalue() == before
    assert board.slots[index].current_text == "finished"
