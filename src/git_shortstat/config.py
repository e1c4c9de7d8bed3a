from __future__ import annotations

import json
from pathlib import Path

DEFAULT_CONFIG_PATH = Path(".git-shortstat.json")

BOOL_KEYS = ("topo_order", "date_order", "reverse", "strict", "flush_each")


class ConfigError(ValueError):
    pass


def load_config(config_path: Path) -> dict:
    if not config_path.exists():
        return {}
    try:
        config = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"{config_path}: invalid JSON: {e}") from e
    if not isinstance(config, dict):
        raise ConfigError(f"{config_path}: top level must be an object")
    return config


def options_from_config(config: dict) -> dict:
    """
    Pick the known keys out of a loaded config, type-checked. Unknown keys are ignored.

    Returns a dict with any of: git_dir (Path), pathspecs (list[str]) and the BOOL_KEYS.
    """
    out: dict = {}
    if "git_dir" in config:
        v = config["git_dir"]
        if not isinstance(v, str) or not v.strip():
            raise ConfigError("git_dir must be a non-empty string")
        out["git_dir"] = Path(v)
    if "pathspecs" in config:
        v = config["pathspecs"]
        if not isinstance(v, list) or not all(isinstance(p, str) for p in v):
            raise ConfigError("pathspecs must be a list of strings")
        out["pathspecs"] = [p for p in v if p.strip()]
    for key in BOOL_KEYS:
        if key in config:
            v = config[key]
            if not isinstance(v, bool):
                raise ConfigError(f"{key} must be true or false")
            out[key] = v
    return out
