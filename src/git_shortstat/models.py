from __future__ import annotations

import dataclasses

RECORD_KEYS = ("f", "i", "d")


@dataclasses.dataclass(frozen=True)
class CommitStat:
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0

    def __post_init__(self) -> None:
        for name in ("files_changed", "insertions", "deletions"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")

    @property
    def changed(self) -> int:
        return self.insertions + self.deletions

    def to_record(self) -> dict[str, int]:
        return {"f": self.files_changed, "i": self.insertions, "d": self.deletions}

    @classmethod
    def from_record(cls, record: object) -> "CommitStat":
        if not isinstance(record, dict):
            raise ValueError(f"record must be an object, got {type(record).__name__}")
        values: list[int] = []
        for key in RECORD_KEYS:
            if key not in record:
                raise ValueError(f"record is missing field {key!r}")
            v = record[key]
            # bool is an int subclass; `true` is not a count
            if isinstance(v, bool) or not isinstance(v, int):
                raise ValueError(f"field {key!r} must be an integer, got {v!r}")
            if v < 0:
                raise ValueError(f"field {key!r} must be >= 0, got {v}")
            values.append(v)
        return cls(files_changed=values[0], insertions=values[1], deletions=values[2])


@dataclasses.dataclass
class StatAccumulator:
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0

    def add_file(self, insertions: int, deletions: int) -> None:
        self.files_changed += 1
        self.insertions += insertions
        self.deletions += deletions

    def finalize(self) -> CommitStat:
        return CommitStat(
            files_changed=self.files_changed,
            insertions=self.insertions,
            deletions=self.deletions,
        )


@dataclasses.dataclass
class ParseReport:
    commits: int = 0
    stat_lines: int = 0
    binary_lines: int = 0
    malformed_lines: int = 0
    ignored_lines: int = 0
    errors: list[str] = dataclasses.field(default_factory=list)
    max_errors: int = 20

    def add_malformed(self, message: str) -> None:
        # only the first max_errors messages are kept; malformed_lines has the full count
        self.malformed_lines += 1
        if len(self.errors) < self.max_errors:
            self.errors.append(message)

    def summary(self) -> str:
        return (
            f"commits={self.commits} stat_lines={self.stat_lines} binary={self.binary_lines} "
            f"malformed={self.malformed_lines} ignored={self.ignored_lines}"
        )
