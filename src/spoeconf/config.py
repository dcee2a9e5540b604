from __future__ import annotations

import configparser
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .paths import default_settings_file, default_transaction_dir

logger = logging.getLogger(__name__)

SETTINGS_SECTION = "spoeconf"
ENV_PREFIX = "SPOECONF_"
SETTINGS_ENV = ENV_PREFIX + "SETTINGS"

_BOOLEAN_STATES = configparser.ConfigParser.BOOLEAN_STATES


@dataclass
class Params:
    """Runtime parameters of a :class:`~spoeconf.client.SpoeClient`."""

    config_file: Path | str | None = None
    transaction_dir: Path | str = field(default_factory=default_transaction_dir)
    persistent_transactions: bool = True
    skip_failed_transactions: bool = True
    backup: bool = True

    def __post_init__(self) -> None:
        if not self.config_file:
            raise ValueError("configuration file missing")
        self.config_file = Path(self.config_file)
        self.transaction_dir = Path(self.transaction_dir)


_FIELDS = {f.name for f in fields(Params)}
_BOOL_FIELDS = {"persistent_transactions", "skip_failed_transactions", "backup"}


def _coerce(name: str, value: Any) -> Any:
    if name in _BOOL_FIELDS and isinstance(value, str):
        try:
            return _BOOLEAN_STATES[value.strip().lower()]
        except KeyError:
            raise ValueError(f"invalid boolean for {name}: {value!r}") from None
    return value


def read_settings(path: Path) -> dict[str, Any]:
    """Return the ``[spoeconf]`` section of the settings file at *path*."""
    parser = configparser.ConfigParser(interpolation=None)
    try:
        parser.read(path, encoding="utf-8")
    except configparser.Error as exc:
        logger.warning("Failed to read settings %s: %s", path, exc)
        return {}
    if not parser.has_section(SETTINGS_SECTION):
        return {}
    out: dict[str, Any] = {}
    for key, value in parser.items(SETTINGS_SECTION):
        if key not in _FIELDS:
            logger.warning("Unknown setting %r in %s", key, path)
            continue
        out[key] = _coerce(key, value)
    return out


def read_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    out: dict[str, Any] = {}
    for name in _FIELDS:
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is not None and raw != "":
            out[name] = _coerce(name, raw)
    return out


def load_params(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> Params:
    """Build :class:`Params` from a settings file, the environment and *overrides*.

    Later sources win.  The settings file is *path*, else ``$SPOECONF_SETTINGS``,
    else ``settings.ini`` in the user config directory when it exists.
    """
    env = os.environ if environ is None else environ
    if path is None and env.get(SETTINGS_ENV):
        path = Path(env[SETTINGS_ENV])
    if path is None:
        candidate = default_settings_file()
        path = candidate if candidate.is_file() else None
    values: dict[str, Any] = {}
    if path is not None:
        values.update(read_settings(Path(path)))
    values.update(read_env(env))
    for key, value in overrides.items():
        if key not in _FIELDS:
            raise TypeError(f"unknown parameter: {key}")
        if value is not None:
            values[key] = _coerce(key, value)
    return Params(**values)
