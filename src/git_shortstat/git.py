from __future__ import annotations

import dataclasses
import subprocess
import threading
from pathlib import Path
from typing import Iterator, Optional

from .numstat import COMMIT_MARKER

MAX_STDERR_CHARS = 50_000


class GitLogError(RuntimeError):
    def __init__(self, message: str, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


@dataclasses.dataclass(frozen=True)
class LogOptions:
    git_dir: Path = Path(".")
    revisions: tuple[str, ...] = ()
    pathspecs: tuple[str, ...] = ()
    topo_order: bool = False
    date_order: bool = False
    reverse: bool = False
    skip: Optional[int] = None
    max_count: Optional[int] = None
    min_parents: Optional[int] = None
    max_parents: Optional[int] = None
    author: Optional[str] = None
    committer: Optional[str] = None
    grep: Optional[str] = None

    def __post_init__(self) -> None:
        if self.topo_order and self.date_order:
            raise ValueError("topo_order and date_order are mutually exclusive")
        for name in ("skip", "max_count", "min_parents", "max_parents"):
            v = getattr(self, name)
            if v is not None and v < 0:
                raise ValueError(f"{name} must be >= 0, got {v}")
        for rev in self.revisions:
            if not rev or rev.startswith("-"):
                raise ValueError(f"Invalid revision: {rev!r}")


def run_git(args: list[str], cwd: Path, timeout_s: int = 300) -> tuple[int, str, str]:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        timeout=timeout_s,
    )
    return proc.returncode, proc.stdout, proc.stderr


def is_git_repo(path: Path) -> bool:
    try:
        code, _, _ = run_git(["rev-parse", "--git-dir"], cwd=path, timeout_s=30)
    except (OSError, subprocess.TimeoutExpired):
        return False
    return code == 0


def build_log_command(options: LogOptions) -> list[str]:
    cmd = [
        "git",
        "log",
        "--numstat",
        "--no-renames",
        "--no-color",
        "--no-ext-diff",
        f"--pretty=format:{COMMIT_MARKER}%H",
    ]
    if options.topo_order:
        cmd.append("--topo-order")
    elif options.date_order:
        cmd.append("--date-order")
    if options.reverse:
        cmd.append("--reverse")
    if options.skip is not None:
        cmd.append(f"--skip={options.skip}")
    if options.max_count is not None:
        cmd.append(f"--max-count={options.max_count}")

    if options.min_parents is not None:
        cmd.append(f"--min-parents={options.min_parents}")
    # merges print no numstat of their own and are never reported
    max_parents = 1 if options.max_parents is None else min(options.max_parents, 1)
    cmd.append(f"--max-parents={max_parents}")

    if options.author:
        cmd.append(f"--author={options.author}")
    if options.committer:
        cmd.append(f"--committer={options.committer}")
    if options.grep:
        cmd.append(f"--grep={options.grep}")

    cmd.extend(options.revisions or ("HEAD",))
    cmd.append("--")
    cmd.extend(options.pathspecs)
    return cmd


def stream_git_log(options: LogOptions) -> Iterator[str]:
    """
    Run `git log --numstat` for `options` and yield its stdout line by line.

    stderr is drained on a background thread so a large amount of it cannot block git.
    Raises GitLogError if git cannot be started or exits non-zero. Closing the generator
    early terminates git.
    """
    cmd = build_log_command(options)
    try:
        proc = subprocess.Popen(
            cmd,
            cwd=str(options.git_dir),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise GitLogError(f"failed to start git log: {e}") from e

    stderr_chunks: list[str] = []
    stderr_chars = 0

    def drain_stderr() -> None:
        nonlocal stderr_chars
        if proc.stderr is None:
            return
        while True:
            chunk = proc.stderr.read(8192)
            if not chunk:
                return
            if stderr_chars >= MAX_STDERR_CHARS:
                continue
            take = chunk[: MAX_STDERR_CHARS - stderr_chars]
            stderr_chunks.append(take)
            stderr_chars += len(take)

    stderr_thread = threading.Thread(target=drain_stderr, daemon=True)
    stderr_thread.start()

    finished = False
    try:
        assert proc.stdout is not None
        for raw_line in proc.stdout:
            yield raw_line.rstrip("\n")
        finished = True
    finally:
        if not finished and proc.poll() is None:
            proc.terminate()
        if proc.stdout is not None:
            proc.stdout.close()
        code = proc.wait()
        stderr_thread.join()
        if proc.stderr is not None:
            proc.stderr.close()

    if code != 0:
        stderr = "".join(stderr_chunks)
        raise GitLogError(f"git log exited {code}: {stderr.strip()[:500]}", returncode=code, stderr=stderr)
