"""
Property-based tests for report formatting: timestamps, chunking and timing.
"""

import re

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from wayback_checker.formatting import (
    Stopwatch,
    format_delay,
    format_hms,
    format_wayback_timestamp,
    label_chunks,
    split_into_chunks,
)


@st.composite
def wayback_timestamp_strategy(draw) -> tuple[str, tuple[int, int, int, int, int, int]]:
    year = draw(st.integers(min_value=1996, max_value=2030))
    month = draw(st.integers(min_value=1, max_value=12))
    day = draw(st.integers(min_value=1, max_value=28))
    hour = draw(st.integers(min_value=0, max_value=23))
    minute = draw(st.integers(min_value=0, max_value=59))
    second = draw(st.integers(min_value=0, max_value=59))
    stamp = f"{year:04d}{month:02d}{day:02d}{hour:02d}{minute:02d}{second:02d}"
    return stamp, (year, month, day, hour, minute, second)


@st.composite
def report_text_strategy(draw, max_line: int) -> str:
    lines = draw(st.lists(
        st.text(
            alphabet=st.characters(blacklist_characters="\n", blacklist_categories=("Cs",)),
            max_size=max_line,
        ),
        min_size=1,
        max_size=40,
    ))
    text = "\n".join(lines)
    if draw(st.booleans()):
        text += "\n"
    return text


class TestTimestampFormatting:
    """``HH:MM:SS Month D, YYYY`` rendering."""

    def test_known_example(self) -> None:
        assert format_wayback_timestamp("20240326053735") == "05:37:35 March 26, 2024"

    def test_day_is_not_padded(self) -> None:
        assert format_wayback_timestamp("20200105000000") == "00:00:00 January 5, 2020"

    @given(data=wayback_timestamp_strategy())
    @settings(max_examples=100)
    def test_components_round_trip(self, data) -> None:
        stamp, (year, month, day, hour, minute, second) = data

        rendered = format_wayback_timestamp(stamp)

        match = re.fullmatch(r"(\d{2}):(\d{2}):(\d{2}) ([A-Z][a-z]+) (\d{1,2}), (\d{4})", rendered)
        assert match is not None
        assert (int(match.group(1)), int(match.group(2)), int(match.group(3))) == (hour, minute, second)
        assert int(match.group(5)) == day
        assert int(match.group(6)) == year

    @given(stamp=st.text(alphabet="0123456789", max_size=13))
    @settings(max_examples=50)
    def test_short_timestamp_is_unknown(self, stamp: str) -> None:
        assert format_wayback_timestamp(stamp) == "Unknown date"

    def test_invalid_month_is_unknown(self) -> None:
        assert format_wayback_timestamp("20241326053735") == "Unknown date"
        assert format_wayback_timestamp("2024xx26053735") == "Unknown date"


class TestChunking:
    """Chunks respect the size limit and only break at newlines."""

    @given(
        max_size=st.integers(min_value=20, max_value=200),
        data=st.data(),
    )
    @settings(max_examples=100)
    def test_round_trip_when_lines_fit(self, max_size, data) -> None:
        text = data.draw(report_text_strategy(max_line=max_size))

        chunks = split_into_chunks(text, max_size)

        expected = text[:-1] if text.endswith("\n") else text
        assert "\n".join(chunks) == expected
        assert all(len(chunk) <= max_size for chunk in chunks)

    @given(
        max_size=st.integers(min_value=5, max_value=50),
        length=st.integers(min_value=51, max_value=300),
    )
    @settings(max_examples=50)
    def test_overlong_line_is_cut_to_limit(self, max_size, length) -> None:
        chunks = split_into_chunks("x" * length, max_size)

        assert all(len(chunk) <= max_size for chunk in chunks)
        assert "".join(chunks) == "x" * length

    def test_empty_text_has_no_chunks(self) -> None:
        assert split_into_chunks("") == []
        assert split_into_chunks("\n") == []

    def test_invalid_limit(self) -> None:
        with pytest.raises(ValueError):
            split_into_chunks("text", 0)

    @given(count=st.integers(min_value=2, max_value=10))
    @settings(max_examples=20)
    def test_part_headers_when_several_chunks(self, count) -> None:
        chunks = [f"chunk {i}" for i in range(count)]

        labelled = label_chunks(chunks)

        for i, chunk in enumerate(labelled, start=1):
            assert chunk.startswith(f"--- Part {i}/{count} ---\n")
        stripped = [c.split("\n", 1)[1] for c in labelled]
        assert stripped == chunks

    def test_single_chunk_has_no_header(self) -> None:
        assert label_chunks(["only"]) == ["only"]


class TestTiming:
    """Execution time breakdown."""

    @given(ms=st.floats(min_value=0, max_value=10 ** 8, allow_nan=False))
    @settings(max_examples=100)
    def test_hms_format(self, ms) -> None:
        rendered = format_hms(ms)
        hours, minutes, seconds = (int(part) for part in rendered.split(":"))
        assert minutes < 60 and seconds < 60
        assert hours * 3600 + minutes * 60 + seconds == int(ms // 1000)

    def test_stopwatch_breakdown(self) -> None:
        ticks = iter([10.0, 3735.256])
        stopwatch = Stopwatch(clock=lambda: next(ticks))

        stopwatch.start()
        elapsed = stopwatch.stop()
        result = stopwatch.execution_time()

        assert elapsed == pytest.approx(3725256.0)
        assert result.seconds == "3725.26"
        assert result.formatted == "01:02:05"
        assert result.ms == pytest.approx(3725256.0)

    def test_delay_rendering(self) -> None:
        assert format_delay(5.0) == "5"
        assert format_delay(2.5) == "2.5"
