from __future__ import annotations

import json
from pathlib import Path

import pytest

from git_shortstat.config import ConfigError, load_config, options_from_config


def test_missing_config_is_empty(tmp_path: Path) -> None:
    assert load_config(tmp_path / "nope.json") == {}


def test_load_config_rejects_bad_files(tmp_path: Path) -> None:
    p = tmp_path / "c.json"
    p.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(p)
    p.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(p)


def test_options_from_config(tmp_path: Path) -> None:
    p = tmp_path / "c.json"
    p.write_text(
        json.dumps({"git_dir": "repo", "pathspecs": ["src", " "], "reverse": True, "strict": False, "other": 1}),
        encoding="utf-8",
    )
    opts = options_from_config(load_config(p))
    assert opts == {"git_dir": Path("repo"), "pathspecs": ["src"], "reverse": True, "strict": False}


def test_options_from_config_type_errors() -> None:
    with pytest.raises(ConfigError):
        options_from_config({"reverse": "yes"})
    with pytest.raises(ConfigError):
        options_from_config({"pathspecs": "src"})
    with pytest.raises(ConfigError):
        options_from_config({"git_dir": ""})
