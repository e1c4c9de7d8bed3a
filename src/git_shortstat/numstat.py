from __future__ import annotations

import enum
from typing import Callable, Iterable, Iterator

from .models import CommitStat, ParseReport, StatAccumulator

COMMIT_MARKER = "@@@"
BINARY_PLACEHOLDER = "-"


class MalformedStatLine(ValueError):
    def __init__(self, line: str, reason: str) -> None:
        super().__init__(f"{reason}: {line!r}")
        self.line = line
        self.reason = reason


class LineKind(enum.Enum):
    COMMIT = "commit"
    STAT = "stat"
    OTHER = "other"


def classify_line(line: str, marker: str = COMMIT_MARKER) -> LineKind:
    if line.startswith(marker):
        return LineKind.COMMIT
    # numstat lines are flush left; indented lines are commit message text
    if line[:1].isspace():
        return LineKind.OTHER
    if len(line.split("\t", 2)) == 3:
        return LineKind.STAT
    return LineKind.OTHER


def _parse_count(field: str, line: str) -> int:
    s = field.strip()
    if s == BINARY_PLACEHOLDER:
        return 0
    if not s or not (s.isascii() and s.isdigit()):
        raise MalformedStatLine(line, f"invalid count {field!r}")
    return int(s)


def parse_stat_line(line: str) -> tuple[int, int, str]:
    """
    Parse one `git log --numstat` file line: `<added>\\t<deleted>\\t<path>`.

    `-` (binary file) parses as 0 for that field. Returns (insertions, deletions, path)
    with the path as git printed it.
    """
    parts = line.split("\t", 2)
    if len(parts) < 3:
        raise MalformedStatLine(line, "expected <added>\\t<deleted>\\t<path>")
    insertions = _parse_count(parts[0], line)
    deletions = _parse_count(parts[1], line)
    return insertions, deletions, parts[2]


def _is_binary(line: str) -> bool:
    parts = line.split("\t", 2)
    return BINARY_PLACEHOLDER in (parts[0].strip(), parts[1].strip())


def iter_commit_stats(
    lines: Iterable[str],
    *,
    marker: str = COMMIT_MARKER,
    strict: bool = False,
    report: ParseReport | None = None,
) -> Iterator[CommitStat]:
    """
    Fold a line stream of `git log --numstat` output into one CommitStat per commit.

    A commit's stat is yielded as soon as the next marker line (or the end of input)
    closes it. Malformed stat lines are skipped and recorded in `report.errors`, or
    raise MalformedStatLine when `strict` is set. Errors raised by `lines` itself
    propagate and discard the open commit.
    """
    if report is None:
        report = ParseReport()

    current: StatAccumulator | None = None
    for lineno, raw_line in enumerate(lines, start=1):
        line = raw_line.rstrip("\r\n")
        if not line.strip():
            continue

        kind = classify_line(line, marker)
        if kind is LineKind.COMMIT:
            if current is not None:
                report.commits += 1
                yield current.finalize()
            current = StatAccumulator()
            continue

        if kind is LineKind.OTHER or current is None:
            report.ignored_lines += 1
            continue

        try:
            added, deleted, _path = parse_stat_line(line)
        except MalformedStatLine as e:
            if strict:
                raise
            report.add_malformed(f"line {lineno}: {e}")
            continue

        report.stat_lines += 1
        if _is_binary(line):
            report.binary_lines += 1
        current.add_file(added, deleted)

    if current is not None:
        report.commits += 1
        yield current.finalize()


def aggregate(
    lines: Iterable[str],
    emit: Callable[[CommitStat], object],
    *,
    marker: str = COMMIT_MARKER,
    strict: bool = False,
    report: ParseReport | None = None,
) -> int:
    count = 0
    for stat in iter_commit_stats(lines, marker=marker, strict=strict, report=report):
        emit(stat)
        count += 1
    return count
