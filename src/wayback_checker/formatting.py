"""
Text formatting helpers for the redirect report.

Covers archive timestamp rendering, splitting the report into size-bounded
chunks at line boundaries, and wall-clock timing of a check.
"""

import time
from typing import Callable, Optional

from .models import ExecutionTime

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

UNKNOWN_DATE = "Unknown date"


def format_wayback_timestamp(timestamp: Optional[str]) -> str:
    """
    Render a 14-digit archive timestamp as ``HH:MM:SS Month D, YYYY``.

    >>> format_wayback_timestamp("20240326053735")
    '05:37:35 March 26, 2024'
    """
    if not timestamp or len(timestamp) < 14 or not timestamp[:14].isdigit():
        return UNKNOWN_DATE

    year = timestamp[0:4]
    month = int(timestamp[4:6])
    day = int(timestamp[6:8])
    hour = timestamp[8:10]
    minute = timestamp[10:12]
    second = timestamp[12:14]

    if not 1 <= month <= 12:
        return UNKNOWN_DATE

    return f"{hour}:{minute}:{second} {MONTH_NAMES[month - 1]} {day}, {year}"


def format_delay(seconds: float) -> str:
    """``5.0`` -> ``"5"``, ``2.5`` -> ``"2.5"``."""
    if float(seconds).is_integer():
        return str(int(seconds))
    return f"{seconds:g}"


def split_into_chunks(text: str, max_chunk_size: int = 3800) -> list[str]:
    """
    Split ``text`` into chunks of at most ``max_chunk_size`` characters.

    Chunks break only between lines, so when every line fits the limit,
    joining the chunks with ``"\\n"`` gives back the text without its final
    trailing newline. A single line longer than the limit is the only thing
    ever cut, into limit-sized pieces.
    """
    if max_chunk_size < 1:
        raise ValueError("max_chunk_size must be positive")

    if text.endswith("\n"):
        text = text[:-1]
    if not text:
        return []

    chunks: list[str] = []
    current: list[str] = []
    current_size = 0

    def flush() -> None:
        nonlocal current, current_size
        if current:
            chunks.append("\n".join(current))
        current = []
        current_size = 0

    for line in text.split("\n"):
        if len(line) > max_chunk_size:
            flush()
            pieces = [
                line[i:i + max_chunk_size] for i in range(0, len(line), max_chunk_size)
            ]
            chunks.extend(pieces[:-1])
            current = [pieces[-1]]
            current_size = len(pieces[-1])
            continue

        added = len(line) + (1 if current else 0)
        if current and current_size + added > max_chunk_size:
            flush()
            added = len(line)

        current.append(line)
        current_size += added

    flush()
    return chunks


def label_chunks(chunks: list[str]) -> list[str]:
    """Prefix each chunk with ``--- Part i/N ---`` when there is more than one."""
    if len(chunks) <= 1:
        return list(chunks)
    total = len(chunks)
    return [f"--- Part {i}/{total} ---\n{chunk}" for i, chunk in enumerate(chunks, start=1)]


def format_hms(elapsed_ms: float) -> str:
    total_seconds = int(elapsed_ms // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class Stopwatch:
    """Wall-clock timer for one check."""

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock
        self._start: Optional[float] = None
        self._end: Optional[float] = None

    def start(self) -> None:
        self._start = self._clock()
        self._end = None

    def stop(self) -> float:
        """Stop the timer and return elapsed milliseconds."""
        if self._start is not None and self._end is None:
            self._end = self._clock()
        return self.elapsed_ms()

    def reset(self) -> None:
        self._start = None
        self._end = None

    def elapsed_ms(self) -> float:
        if self._start is None:
            return 0.0
        end = self._end if self._end is not None else self._clock()
        return (end - self._start) * 1000

    def execution_time(self) -> ExecutionTime:
        elapsed = self.elapsed_ms()
        return ExecutionTime(
            seconds=f"{elapsed / 1000:.2f}",
            formatted=format_hms(elapsed),
            ms=elapsed,
        )
