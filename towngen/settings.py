"""Settings loader: environment (and optional JSON settings file) -> TownConfig.

Layering, lowest first:

1. ``TownConfig`` defaults
2. ``TOWNGEN_CONFIG_FILE``: a JSON object of camelCase options
3. ``TOWNGEN_<OPTION>`` variables, e.g. ``TOWNGEN_TOWN_SIZE=12`` or
   ``TOWNGEN_ROOM_SIZE_MAX=6x6``; table options take a JSON object
4. ``overrides`` passed by the caller (CLI flags, HTTP request body)

In layers 2 and 3 a ``namePools`` entry may name a text file (one name per
line) instead of listing the names; overrides must list them inline.

``.env`` files are loaded by the app factory / CLI via python-dotenv before
this runs, so they simply show up as environment variables here.
"""
from __future__ import annotations

import json
import os
from dataclasses import fields
from typing import Any, Dict, List, Mapping, Optional

from towngen.town.config import TownConfig
from towngen.town.errors import ConfigError

ENV_PREFIX = "TOWNGEN_"
# TOWNGEN_* variables that are not generation options
RESERVED = {"CONFIG_FILE", "DATABASE_URL", "LOG_LEVEL", "LOG_JSON", "SECRET_KEY", "HOST", "PORT"}


def _env_value(raw: str) -> Any:
    s = raw.strip()
    if s.startswith("{") or s.startswith("["):
        try:
            return json.loads(s)
        except ValueError:
            raise ConfigError(f"could not parse JSON value {s!r}") from None
    return s


def env_options(environ: Mapping[str, str]) -> Dict[str, Any]:
    known = {f.name for f in fields(TownConfig)}
    out: Dict[str, Any] = {}
    for key, raw in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):]
        if name in RESERVED:
            continue
        option = name.lower()
        if option in known and raw != "":
            out[option] = _env_value(raw)
    return out


def file_options(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as exc:
        raise ConfigError(f"cannot read settings file {path}: {exc.strerror}", path=path) from exc
    except ValueError as exc:
        raise ConfigError(f"settings file {path} is not valid JSON: {exc}", path=path) from exc
    if not isinstance(data, dict):
        raise ConfigError(f"settings file {path} must hold a JSON object", path=path)
    return data


def load_list(path: str) -> List[str]:
    """One name per line; blank lines and ``#`` comments are skipped."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = [line.strip() for line in f]
    except OSError as exc:
        raise ConfigError(f"cannot read name list {path}: {exc.strerror}", path=path) from exc
    names = [line for line in lines if line and not line.startswith("#")]
    if not names:
        raise ConfigError(f"name list {path} is empty", path=path)
    return names


def with_name_lists(options: Mapping[str, Any], base_dir: str) -> Dict[str, Any]:
    """Replace name pools given as file paths with the names they list.

    Relative paths resolve against ``base_dir`` (the settings file's folder,
    or the working directory for environment values).
    """
    out = dict(options)
    for key in ("namePools", "name_pools"):
        pools = out.get(key)
        if not isinstance(pools, Mapping):
            continue
        out[key] = {
            name: load_list(os.path.join(base_dir, value)) if isinstance(value, str) else value
            for name, value in pools.items()
        }
    return out


def load_config(overrides: Optional[Mapping[str, Any]] = None,
                environ: Optional[Mapping[str, str]] = None) -> TownConfig:
    environ = os.environ if environ is None else environ
    config = TownConfig()
    path = environ.get(ENV_PREFIX + "CONFIG_FILE")
    if path:
        base_dir = os.path.dirname(os.path.abspath(path))
        config = TownConfig.from_mapping(with_name_lists(file_options(path), base_dir), base=config)
    config = TownConfig.from_mapping(with_name_lists(env_options(environ), os.getcwd()), base=config)
    if overrides:
        config = TownConfig.from_mapping({k: v for k, v in overrides.items() if v is not None}, base=config)
    return config


__all__ = ["ENV_PREFIX", "env_options", "file_options", "load_config", "load_list", "with_name_lists"]
