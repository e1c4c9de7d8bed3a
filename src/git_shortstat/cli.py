from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Iterable

from .config import DEFAULT_CONFIG_PATH, ConfigError, load_config, options_from_config
from .emit import write_records
from .git import GitLogError, LogOptions, build_log_command, is_git_repo, stream_git_log
from .models import ParseReport
from .numstat import COMMIT_MARKER, MalformedStatLine, iter_commit_stats

MAX_REPORTED_ERRORS = 5


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-shortstat",
        usage="%(prog)s [options] [<commit>...] [-- <path>...]",
        description="Emit one JSON line of change stats ({\"f\":files,\"i\":insertions,\"d\":deletions}) per commit.",
    )
    parser.add_argument("revisions", nargs="*", metavar="commit", help="Commits or ranges to walk (default: HEAD). Prefix with ^ to hide.")
    parser.add_argument("--git-dir", type=Path, default=None, help="Repository to read (default: current directory).")
    parser.add_argument("--config", type=Path, default=None, help=f"Path to a JSON config file (default: {DEFAULT_CONFIG_PATH}).")
    order = parser.add_mutually_exclusive_group()
    order.add_argument("--topo-order", action="store_true", default=None, help="Sort commits in topological order.")
    order.add_argument("--date-order", action="store_true", default=None, help="Sort commits in date order.")
    parser.add_argument("--reverse", action="store_true", default=None, help="Walk commits in reverse.")
    parser.add_argument("--skip", type=int, default=None, help="Number of commits to skip.")
    parser.add_argument("-n", "--max-count", type=int, default=None, help="Maximum number of commits to show.")
    parser.add_argument("--merges", action="store_true", help="Only merge commits (shorthand for --min-parents 2; merges are never reported, so this yields no records).")
    parser.add_argument("--min-parents", type=int, default=None, help="Only commits with at least this many parents.")
    parser.add_argument("--max-parents", type=int, default=None, help="Only commits with at most this many parents.")
    parser.add_argument("--no-min-parents", action="store_true", help="Drop any minimum parent count (including --merges).")
    parser.add_argument("--no-max-parents", action="store_true", help="Drop any maximum parent count. Merge commits are still not reported.")
    parser.add_argument("--author", type=str, default=None, help="Limit to commits by a matching author.")
    parser.add_argument("--committer", type=str, default=None, help="Limit to commits by a matching committer.")
    parser.add_argument("--grep", type=str, default=None, help="Limit to commits whose message matches a pattern.")
    parser.add_argument("--strict", action="store_true", default=None, help="Fail on a malformed stat line instead of skipping it.")
    parser.add_argument("--flush", dest="flush_each", action="store_true", default=None, help="Flush output after every record.")
    parser.add_argument("-o", "--output", type=Path, default=None, help="Write records to a file instead of stdout.")
    parser.add_argument("--stdin", action="store_true", help="Read `git log --numstat` output from stdin instead of running git.")
    parser.add_argument("--marker", type=str, default=COMMIT_MARKER, help=f"Commit line prefix when reading --stdin (default: {COMMIT_MARKER}).")
    noise = parser.add_mutually_exclusive_group()
    noise.add_argument("-v", "--verbose", action="store_true", help="Print the git command and a parse summary to stderr.")
    noise.add_argument("-q", "--quiet", action="store_true", help="Do not print warnings.")
    return parser


def _split_pathspecs(argv: list[str]) -> tuple[list[str], list[str]]:
    if "--" not in argv:
        return argv, []
    i = argv.index("--")
    return argv[:i], argv[i + 1 :]


def _pick(value: object, config: dict, key: str, default: object) -> object:
    if value is not None:
        return value
    return config.get(key, default)


def _min_parents(args: argparse.Namespace) -> int | None:
    if args.no_min_parents:
        return None
    if args.min_parents is not None:
        return args.min_parents
    return 2 if args.merges else None


def _close(it: Iterable[object]) -> None:
    close = getattr(it, "close", None)
    if callable(close):
        close()


def _print_report(report: ParseReport, *, verbose: bool, quiet: bool) -> None:
    if report.malformed_lines and not quiet:
        print(f"warning: skipped {report.malformed_lines} malformed stat line(s)", file=sys.stderr)
        for msg in report.errors[:MAX_REPORTED_ERRORS]:
            print(f"  {msg}", file=sys.stderr)
        shown = min(len(report.errors), MAX_REPORTED_ERRORS)
        if report.malformed_lines > shown:
            print(f"  (+{report.malformed_lines - shown} more)", file=sys.stderr)
    if verbose:
        print(report.summary(), file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    argv, cli_pathspecs = _split_pathspecs(list(argv))

    parser = _build_parser()
    args = parser.parse_args(argv)

    config_path = args.config or DEFAULT_CONFIG_PATH
    if args.config is not None and not config_path.exists():
        print(f"error: config file not found: {config_path}", file=sys.stderr)
        return 2
    try:
        config = options_from_config(load_config(config_path))
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    strict = bool(_pick(args.strict, config, "strict", False))
    flush_each = bool(_pick(args.flush_each, config, "flush_each", False))
    topo_order = bool(_pick(args.topo_order, config, "topo_order", False))
    date_order = bool(_pick(args.date_order, config, "date_order", False))
    if args.topo_order:
        date_order = False
    elif args.date_order:
        topo_order = False

    try:
        options = LogOptions(
            git_dir=Path(_pick(args.git_dir, config, "git_dir", Path("."))),
            revisions=tuple(args.revisions),
            pathspecs=tuple(cli_pathspecs or config.get("pathspecs", [])),
            topo_order=topo_order,
            date_order=date_order,
            reverse=bool(_pick(args.reverse, config, "reverse", False)),
            skip=args.skip,
            max_count=args.max_count,
            min_parents=_min_parents(args),
            max_parents=None if args.no_max_parents else args.max_parents,
            author=args.author,
            committer=args.committer,
            grep=args.grep,
        )
    except ValueError as e:
        parser.error(str(e))

    if args.stdin:
        lines: Iterable[str] = sys.stdin
        marker = args.marker
    else:
        if not is_git_repo(options.git_dir):
            print(f"error: not a git repository: {options.git_dir}", file=sys.stderr)
            return 1
        if args.verbose:
            print("$ " + " ".join(build_log_command(options)), file=sys.stderr)
        lines = stream_git_log(options)
        marker = COMMIT_MARKER

    try:
        sink = args.output.open("w", encoding="utf-8", newline="\n") if args.output else sys.stdout
    except OSError as e:
        print(f"error: cannot open output: {e}", file=sys.stderr)
        return 2

    report = ParseReport()
    stats = iter_commit_stats(lines, marker=marker, strict=strict, report=report)
    try:
        write_records(stats, sink, flush_each=flush_each)
    except MalformedStatLine as e:
        print(f"error: malformed stat line: {e}", file=sys.stderr)
        return 1
    except GitLogError as e:
        _print_report(report, verbose=args.verbose, quiet=args.quiet)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except BrokenPipeError:
        # Reader went away (e.g. `| head`); point stdout at devnull so the exit flush is silent.
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        return 0
    finally:
        stats.close()
        if not args.stdin:
            _close(lines)
        if sink is not sys.stdout:
            sink.close()

    _print_report(report, verbose=args.verbose, quiet=args.quiet)
    return 0
