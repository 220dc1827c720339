"""
Daybook configuration.

Settings are layered, later layers winning:
    1. ``DEFAULTS`` below (plus any ``defaults=`` passed by the caller)
    2. A YAML or JSON config file
    3. ``DAYBOOK_<SECTION>__<KEY>`` environment variables

Env values are read as YAML scalars, so ``DAYBOOK_JOURNAL__DEBOUNCE_SECONDS=0.25``
arrives as a float. Keys are addressed with dots::

    config = Config(config_file="~/.daybook/config.yaml")
    config.get("journal.location")                   # "desktop", "data_dir" or a path
    config.get_float("journal.debounce_seconds", 1.0)
"""

import copy
import json
import os
from typing import Any

import yaml

from .exceptions import ConfigurationError

ENV_PREFIX = "DAYBOOK_"
DATA_DIR_NAME = ".daybook-data"

DEFAULTS: dict[str, Any] = {
    "journal": {
        "location": "desktop",
        "debounce_seconds": 1.0,
        "max_staleness_seconds": 5.0,
    },
    "logging": {
        "level": "WARNING",
        "file": "",
    },
}


def _merge(target: dict, source: dict) -> None:
    """Recursively merge *source* into *target* in place."""
    for key, value in source.items():
        if isinstance(target.get(key), dict) and isinstance(value, dict):
            _merge(target[key], value)
        else:
            target[key] = value


def _env_scalar(raw: str) -> Any:
    try:
        value = yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw
    return value if isinstance(value, (str, int, float, bool)) else raw


class Config:
    """
    Layered daybook settings.

    Args:
        config_file: YAML (.yaml/.yml) or JSON file. A missing file is skipped.
        env_prefix: Prefix for environment overrides; empty disables them.
        data_dir: Root used by the ``data_dir`` library location, stored as
            ``paths.data_dir``. Defaults to ~/.daybook-data.
        defaults: Extra defaults merged over ``DEFAULTS``.

    Raises:
        ConfigurationError: The file can't be parsed, or the journal timings
            are not numbers with ``debounce_seconds <= max_staleness_seconds``.
    """

    def __init__(
        self,
        config_file: str | None = None,
        env_prefix: str = ENV_PREFIX,
        data_dir: str | None = None,
        defaults: dict[str, Any] | None = None,
    ):
        self.config_file = os.path.expanduser(config_file) if config_file else None
        self.env_prefix = env_prefix or ""

        data_root = os.path.expanduser(data_dir or os.path.join("~", DATA_DIR_NAME))
        self.config_data: dict[str, Any] = copy.deepcopy(DEFAULTS)
        self.config_data["paths"] = {"data_dir": data_root}

        if defaults:
            _merge(self.config_data, defaults)
        if self.config_file and os.path.exists(self.config_file):
            _merge(self.config_data, self._read_file(self.config_file))
        if self.env_prefix:
            _merge(self.config_data, self._read_env(self.env_prefix))

        self._check_journal_timings()

    @staticmethod
    def _read_file(path: str) -> dict[str, Any]:
        ext = os.path.splitext(path)[1].lower()
        try:
            with open(path) as f:
                if ext in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                elif ext == ".json":
                    data = json.load(f)
                else:
                    raise ConfigurationError(f"Unsupported config file type: {path}")
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Invalid config file {path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return data

    @staticmethod
    def _read_env(prefix: str) -> dict[str, Any]:
        """Collect ``PREFIX_A__B=value`` variables as ``{"a": {"b": value}}``."""
        overrides: dict[str, Any] = {}
        for name, raw in os.environ.items():
            if not name.startswith(prefix):
                continue
            *sections, key = name[len(prefix) :].lower().split("__")
            node = overrides
            for section in sections:
                node = node.setdefault(section, {})
            node[key] = _env_scalar(raw)
        return overrides

    def _check_journal_timings(self) -> None:
        debounce = self.get_float("journal.debounce_seconds", DEFAULTS["journal"]["debounce_seconds"])
        staleness = self.get_float("journal.max_staleness_seconds", DEFAULTS["journal"]["max_staleness_seconds"])
        if not 0 <= debounce <= staleness:
            raise ConfigurationError(
                "journal.debounce_seconds must be between 0 and journal.max_staleness_seconds "
                f"(got {debounce} and {staleness})"
            )

    def get(self, key_path: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``"journal.location"``; *default* if absent."""
        node: Any = self.config_data
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def get_float(self, key_path: str, default: float) -> float:
        value = self.get(key_path, default)
        if isinstance(value, bool):
            raise ConfigurationError(f"{key_path} must be a number, got {value!r}")
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{key_path} must be a number, got {value!r}") from e

    def get_data_dir(self) -> str:
        """Root folder for ``journal.location: data_dir``."""
        return os.path.expanduser(self.get("paths.data_dir"))

