from __future__ import annotations

import os
from pathlib import Path

import pytest

from git_shortstat.git import GitLogError, LogOptions, stream_git_log
from git_shortstat.numstat import iter_commit_stats


def _install_fake_git(tmp_path: Path, monkeypatch, log_body: list[str]) -> Path:
    fake_git_dir = tmp_path / "bin"
    fake_git_dir.mkdir()
    fake_git = fake_git_dir / "git"
    fake_git.write_text(
        "\n".join(
            [
                "#!/usr/bin/env python3",
                "import sys",
                "",
                "def main() -> int:",
                "    if len(sys.argv) > 1 and sys.argv[1] == 'rev-parse':",
                "        sys.stdout.write('.git\\n')",
                "        return 0",
                "    if len(sys.argv) > 1 and sys.argv[1] == 'log':",
                *[f"        {line}" for line in log_body],
                "    sys.stderr.write('unexpected args: ' + ' '.join(sys.argv) + '\\n')",
                "    return 2",
                "",
                "if __name__ == '__main__':",
                "    raise SystemExit(main())",
            ]
        )
        + "\n",
        encoding="utf-8",
    )
    fake_git.chmod(0o755)
    monkeypatch.setenv("PATH", str(fake_git_dir) + os.pathsep + os.environ.get("PATH", ""))
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    return repo_dir


def test_stream_git_log_yields_lines(tmp_path: Path, monkeypatch) -> None:
    repo_dir = _install_fake_git(
        tmp_path,
        monkeypatch,
        [
            "sys.stdout.write('@@@a\\n1\\t0\\tfile.py\\n\\n@@@b\\n2\\t3\\tfile2.py')",
            "return 0",
        ],
    )
    lines = list(stream_git_log(LogOptions(git_dir=repo_dir)))
    assert lines == ["@@@a", "1\t0\tfile.py", "", "@@@b", "2\t3\tfile2.py"]


def test_stream_git_log_does_not_deadlock_on_stderr(tmp_path: Path, monkeypatch) -> None:
    repo_dir = _install_fake_git(
        tmp_path,
        monkeypatch,
        [
            "sys.stdout.write('@@@a\\n1\\t0\\tfile.py\\n')",
            "sys.stdout.flush()",
            "sys.stderr.write('E' * (2 * 1024 * 1024))",
            "sys.stderr.flush()",
            "sys.stdout.write('@@@b\\n2\\t0\\tfile2.py\\n')",
            "return 0",
        ],
    )
    stats = [s.to_record() for s in iter_commit_stats(stream_git_log(LogOptions(git_dir=repo_dir)))]
    assert stats == [{"f": 1, "i": 1, "d": 0}, {"f": 1, "i": 2, "d": 0}]


def test_stream_git_log_raises_on_nonzero_exit(tmp_path: Path, monkeypatch) -> None:
    repo_dir = _install_fake_git(
        tmp_path,
        monkeypatch,
        [
            "sys.stdout.write('@@@a\\n1\\t1\\tx\\n')",
            "sys.stderr.write('fatal: bad revision\\n')",
            "return 128",
        ],
    )
    got = []
    with pytest.raises(GitLogError) as excinfo:
        for stat in iter_commit_stats(stream_git_log(LogOptions(git_dir=repo_dir))):
            got.append(stat)
    assert excinfo.value.returncode == 128
    assert "bad revision" in excinfo.value.stderr
    assert got == []


def test_stream_git_log_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(GitLogError):
        list(stream_git_log(LogOptions(git_dir=tmp_path / "missing")))


def test_stream_git_log_close_early_terminates(tmp_path: Path, monkeypatch) -> None:
    repo_dir = _install_fake_git(
        tmp_path,
        monkeypatch,
        [
            "for n in range(200000):",
            "    sys.stdout.write(f'@@@{n}\\n1\\t1\\tf\\n')",
            "return 0",
        ],
    )
    gen = stream_git_log(LogOptions(git_dir=repo_dir))
    assert next(gen) == "@@@0"
    gen.close()
