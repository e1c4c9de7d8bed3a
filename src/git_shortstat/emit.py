from __future__ import annotations

import json
from typing import Iterable, Iterator, TextIO

from .models import CommitStat


def format_record(stat: CommitStat) -> str:
    return json.dumps(stat.to_record(), separators=(",", ":"))


def write_records(stats: Iterable[CommitStat], sink: TextIO, *, flush_each: bool = False) -> int:
    """
    Write one compact JSON record per line to `sink` and return how many were written.

    With `flush_each`, the sink is flushed after every record so a reader on the other
    end of a pipe sees each commit as soon as it is closed.
    """
    count = 0
    for stat in stats:
        sink.write(format_record(stat) + "\n")
        if flush_each:
            sink.flush()
        count += 1
    return count


def read_records(lines: Iterable[str]) -> Iterator[CommitStat]:
    for lineno, line in enumerate(lines, start=1):
        s = line.strip()
        if not s:
            continue
        try:
            record = json.loads(s)
        except json.JSONDecodeError as e:
            raise ValueError(f"line {lineno}: invalid JSON record: {e}") from e
        try:
            yield CommitStat.from_record(record)
        except ValueError as e:
            raise ValueError(f"line {lineno}: {e}") from e
