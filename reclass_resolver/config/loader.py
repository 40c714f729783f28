"""Configuration loading from reclass-style option dicts and YAML files."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from reclass_resolver.config.models import CompatFlag, Config
from reclass_resolver.utils.errors import ConfigError

logger = logging.getLogger("reclass_resolver.config")

DEFAULT_CONFIG_FILE = "reclass-config.yml"

_BOOL_OPTIONS = {
    "ignore_class_notfound",
    "compose_node_name",
    "allow_none_override",
    "class_mappings_match_path",
    "strict_merge",
}
_STR_LIST_OPTIONS = {"ignore_class_notfound_regexp", "class_mappings"}
_COMPAT_OPTIONS = {"reclass_rs_compat_flags", "compat_flags"}


def config_from_dict(inventory_path: str | Path, options: Mapping[str, Any]) -> Config:
    """Build a Config from reclass option names relative to `inventory_path`."""

    base = str(inventory_path)
    fields: dict[str, Any] = {
        "inventory_path": base,
        "nodes_path": _join(base, "nodes"),
        "classes_path": _join(base, "classes"),
    }

    for key, value in options.items():
        if key == "nodes_uri":
            fields["nodes_path"] = _join(base, _expect_str(key, value))
        elif key == "classes_uri":
            fields["classes_path"] = _join(base, _expect_str(key, value))
        elif key in _BOOL_OPTIONS:
            if not isinstance(value, bool):
                raise ConfigError(f"Expected value of config key '{key}' to be a boolean")
            fields[key] = value
        elif key in _STR_LIST_OPTIONS:
            fields[key] = _expect_str_list(key, value)
        elif key in _COMPAT_OPTIONS:
            fields["compatflags"] = _parse_compat_flags(_expect_str_list(key, value))
        elif key == "default_environment":
            fields[key] = _expect_str(key, value)
        else:
            logger.info("config option '%s' is not supported, ignoring", key)

    try:
        return Config.model_validate(fields)
    except ValidationError as exc:
        raise ConfigError(f"Invalid inventory configuration for {base}: {exc}") from exc


def load_config(inventory_path: str | Path, config_file: str = DEFAULT_CONFIG_FILE) -> Config:
    """Load options from `<inventory_path>/<config_file>` and build a Config."""

    config_path = Path(inventory_path) / config_file

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {config_path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in config file: {config_path}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Expected reclass config to be a mapping: {config_path}")

    return config_from_dict(inventory_path, raw)


def _join(base: str, relative: str) -> str:
    joined = os.path.normpath(os.path.join(base, relative))
    if base.startswith("./") and not joined.startswith((".", os.sep)):
        joined = f"./{joined}"
    return joined


def _expect_str(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"Expected value of config key '{key}' to be a string")
    return value


def _expect_str_list(key: str, value: Any) -> list[str]:
    if not isinstance(value, list):
        raise ConfigError(f"Expected value of config key '{key}' to be a list")
    for item in value:
        if not isinstance(item, str):
            raise ConfigError(f"Expected entry of config key '{key}' to be a string")
    return list(value)


def _parse_compat_flags(values: list[str]) -> frozenset[CompatFlag]:
    flags: set[CompatFlag] = set()
    for value in values:
        try:
            flags.add(CompatFlag.parse(value))
        except ValueError:
            logger.warning("Unknown compatibility flag '%s', ignoring...", value)
    return frozenset(flags)
