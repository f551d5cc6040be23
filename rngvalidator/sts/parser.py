"""Readers for the statistical test suite's per-test output files.

Every test directory under ``experiments/AlgorithmTesting`` holds a
``stats.txt`` (human-readable report, one ``SUCCESS``/``FAILURE`` line per
computed p-value) and a ``results.txt`` (one bare p-value per line). Lines
the suite writes for errors or "test not applicable" warnings carry no
verdict marker and contribute nothing.

A non-empty ``stats.txt`` decides the outcome on its own: when it holds only
such a notice the test has no result, even though the excursion tests still
fill ``results.txt`` with ``0.000000`` placeholders.
"""

import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..errors import ResultParseFailure

logger = logging.getLogger(__name__)

STATS_FILE = "stats.txt"
RESULTS_FILE = "results.txt"

_MARKER = re.compile(r"\b(SUCCESS|FAILURE)\b")
_P_TOKEN = re.compile(r"p[_-]value\d*\s*=\s*(\S+)", re.IGNORECASE)
_NUMBER = re.compile(r"[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?")
_NOTICE = re.compile(r"\b(?:NOT APPLICABLE|ERROR)\b")


@dataclass(frozen=True)
class ParsedOutcome:
    """p-values read from one test's output, in file order.

    ``suite_verdicts`` holds the suite's own pass/fail marker for each value
    when it came from the statistics file (empty for ``results.txt``).
    """

    p_values: Tuple[float, ...]
    suite_verdicts: Tuple[bool, ...]
    source: Path

    def select(self, index: Optional[int]) -> "ParsedOutcome":
        """Narrow to the value at ``index``; ``None`` keeps every value."""
        if index is None:
            return self
        if index >= len(self.p_values):
            raise ResultParseFailure(
                f"{self.source} holds {len(self.p_values)} p-value(s); value #{index + 1} is missing"
            )
        verdicts = self.suite_verdicts[index:index + 1] if index < len(self.suite_verdicts) else ()
        return ParsedOutcome((self.p_values[index],), verdicts, self.source)


def parse_stats_file(path: Union[str, Path]) -> ParsedOutcome:
    """Extract every marked p-value from a ``stats.txt`` file."""
    path = Path(path)
    return _parse_stats_text(_read(path), path)


def _parse_stats_text(text: str, path: Path) -> ParsedOutcome:
    values: List[float] = []
    verdicts: List[bool] = []
    for line in text.splitlines():
        marker = _MARKER.search(line)
        if not marker:
            continue
        p = _line_p_value(line, marker.start())
        if p is None:
            logger.debug("Ignoring stats line without a usable p-value in %s: %r", path, line.strip())
            continue
        values.append(p)
        verdicts.append(marker.group(1) == "SUCCESS")
    if not values:
        notice = _notice(text)
        if notice:
            raise ResultParseFailure(f"Suite reported no result in {path}: {notice}")
        raise ResultParseFailure(f"No p-values found in {path}")
    return ParsedOutcome(tuple(values), tuple(verdicts), path)


def parse_results_file(path: Union[str, Path]) -> ParsedOutcome:
    """Extract p-values from a plain ``results.txt`` file (one per line)."""
    path = Path(path)
    text = _read(path)
    values = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        p = _as_p_value(line)
        if p is not None:
            values.append(p)
    if not values:
        raise ResultParseFailure(f"No p-values found in {path}")
    return ParsedOutcome(tuple(values), (), path)


def parse_location(location: Optional[Union[str, Path]]) -> ParsedOutcome:
    """Parse a test's output directory.

    ``results.txt`` is only consulted when ``stats.txt`` is absent, empty or
    unreadable.
    """
    if location is None:
        raise ResultParseFailure("No result files were produced")
    location = Path(location)
    if location.is_file():
        if location.name == RESULTS_FILE:
            return parse_results_file(location)
        return parse_stats_file(location)

    stats, results = location / STATS_FILE, location / RESULTS_FILE
    if stats.is_file():
        try:
            text = _read(stats)
        except ResultParseFailure as e:
            logger.debug("Falling back to %s: %s", RESULTS_FILE, e.message)
        else:
            if text.strip():
                return _parse_stats_text(text, stats)
    if results.is_file():
        return parse_results_file(results)
    raise ResultParseFailure(f"No result files in {location}")


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ResultParseFailure(f"Cannot read {path}: {e}") from e


def _notice(text: str) -> Optional[str]:
    for line in text.splitlines():
        if _NOTICE.search(line):
            return " ".join(line.split())
    return None


def _line_p_value(line: str, marker_pos: int) -> Optional[float]:
    token = _P_TOKEN.search(line)
    if token:
        return _as_p_value(token.group(1).rstrip(";,"))
    # template tables: "... chi^2 p_value SUCCESS index"
    numbers = _NUMBER.findall(line[:marker_pos])
    if numbers:
        return _as_p_value(numbers[-1])
    return None


def _as_p_value(token: str) -> Optional[float]:
    try:
        p = float(token)
    except ValueError:
        return None
    if math.isnan(p) or not (0.0 <= p <= 1.0):
        return None
    return p
