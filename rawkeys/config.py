# Copyright 2025 icecake0141
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# This file was created or modified with the assistance of an AI (Large Language Model).
# Review required for correctness, security, and licensing.

"""
Settings file for rawkeys.

``~/.rawkeys.conf`` holds defaults for the command-line options and extra
escape sequences for terminals whose keys are missing from the built-in
table. The file may be INI or YAML::

    [default]                       default:
    mode = immediate_no_echo          mode: immediate_no_echo
    quit_key = x                      quit_key: x

    [keys]                          keys:
    home = 1b 5b 31 7e                home: ["1b 5b 31 7e", "1b 5b 37 7e"]
    end = 1b 5b 34 7e, 1b 5b 38 7e    end: "1b 5b 34 7e"

Sequences are hex bytes; several sequences for one key are separated by
commas (INI) or given as a list (YAML).

Priority order: CLI args > ~/.rawkeys.conf > hardcoded defaults
"""

import configparser
import logging
import os
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml

from rawkeys.decoder import MAX_SEQUENCE_LENGTH
from rawkeys.keys import ESC, VIRTUAL_KEY_TABLE, VirtualKey, extend_table
from rawkeys.terminal_mode import RawModeSetting

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.expanduser("~/.rawkeys.conf")

BACKENDS = ("termios", "readchar")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_YAML_SUFFIXES = (".yaml", ".yml")
_SECTIONS = ("default", "keys")


def parse_mode(value: Any) -> RawModeSetting:
    try:
        return RawModeSetting(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(setting.value for setting in RawModeSetting)
        raise ValueError(f"unknown raw mode {value!r} (choose from {choices})") from None


def _parse_backend(value: Any) -> str:
    backend = str(value).strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"unknown backend {value!r} (choose from {', '.join(BACKENDS)})")
    return backend


def _parse_log_level(value: Any) -> str:
    level = str(value).strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"unknown log level {value!r} (choose from {', '.join(LOG_LEVELS)})")
    return level


def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    state = configparser.ConfigParser.BOOLEAN_STATES.get(str(value).strip().lower())
    if state is None:
        raise ValueError(f"expected yes/no, true/false, on/off or 1/0, got {value!r}")
    return state


def _parse_path(value: Any) -> str:
    return os.path.expanduser(str(value))


def parse_quit_key(value: Any, table: Mapping[bytes, VirtualKey] = VIRTUAL_KEY_TABLE) -> str:
    """
    Validate the character that ends an echo session.

    The quit key only matches character input, so a character the table
    decodes as a virtual key (Tab, Enter, Backspace, Escape) could never
    end the session and is rejected.
    """
    key = str(value)
    if len(key) != 1:
        raise ValueError(f"quit key must be a single character, got {key!r}")
    virtual = table.get(key.encode("utf-8"))
    if virtual is not None:
        raise ValueError(f"quit key {key!r} decodes as virtual key {virtual.name}, so it would never match")
    return key


def parse_sequence(value: Any) -> bytes:
    """
    Parse one key sequence written as hex, e.g. ``1b 5b 31 7e``.

    Multi-byte sequences must begin with ESC and fit in one decode cycle;
    any other first byte is read as a keystroke of its own.
    """
    try:
        data = bytes.fromhex(str(value))
    except ValueError:
        raise ValueError(f"expected hex bytes such as '1b 5b 31 7e', got {value!r}") from None
    if not data:
        raise ValueError("empty key sequence")
    if len(data) > 1 and not data.startswith(ESC):
        raise ValueError(f"multi-byte sequence {data!r} does not start with ESC")
    if len(data) > MAX_SEQUENCE_LENGTH:
        raise ValueError(f"{len(data)}-byte sequence exceeds the {MAX_SEQUENCE_LENGTH} bytes read per keystroke")
    return data


_FIELD_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "mode": parse_mode,
    "backend": _parse_backend,
    "quit_key": parse_quit_key,
    "show_bytes": _parse_flag,
    "log_level": _parse_log_level,
    "log_file": _parse_path,
    "debug_log": _parse_path,
}


def _parse_defaults(section: Mapping[str, Any], path: str) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for field, value in section.items():
        parse = _FIELD_PARSERS.get(field)
        if parse is None:
            logger.warning("Unknown config key '%s' in '%s'; ignoring.", field, path)
            continue
        if value is None:
            continue
        try:
            result[field] = parse(value)
        except ValueError as exc:
            raise ValueError(f"Invalid value for '{field}' in '{path}': {exc}") from exc
    return result


def _sequence_values(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [part for part in str(value).split(",") if part.strip()]


def _parse_keys(section: Mapping[str, Any], path: str) -> Dict[bytes, VirtualKey]:
    sequences: Dict[bytes, VirtualKey] = {}
    for name, value in section.items():
        try:
            key = VirtualKey[str(name).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown virtual key '{name}' in keys section of '{path}'") from None
        for item in _sequence_values(value):
            try:
                sequence = parse_sequence(item)
            except ValueError as exc:
                raise ValueError(f"Invalid sequence for '{name}' in '{path}': {exc}") from exc
            if sequences.get(sequence, key) is not key:
                raise ValueError(f"Sequence {sequence!r} is listed for two keys in '{path}'")
            sequences[sequence] = key
    try:
        extend_table(sequences)
    except ValueError as exc:
        raise ValueError(f"Invalid keys section in '{path}': {exc}") from exc
    return sequences


def _read_ini(path: str) -> Dict[str, Dict[str, Any]]:
    parser = configparser.ConfigParser(interpolation=None)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            parser.read_file(fh)
    except configparser.Error as exc:
        raise ValueError(f"Invalid config file '{path}': {exc}") from exc
    except OSError as exc:
        raise ValueError(f"Cannot read config file '{path}': {exc}") from exc
    return {name: dict(parser.items(name)) for name in parser.sections()}


def _read_yaml(path: str) -> Dict[str, Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in config file '{path}': {exc}") from exc
    except OSError as exc:
        raise ValueError(f"Cannot read config file '{path}': {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file '{path}' must contain a YAML mapping at the top level, got {type(data).__name__}.")
    sections: Dict[str, Dict[str, Any]] = {}
    for name, section in data.items():
        if section is None:
            section = {}
        if not isinstance(section, dict):
            raise ValueError(f"Section '{name}' in '{path}' must be a YAML mapping.")
        sections[str(name)] = section
    return sections


def _is_yaml(path: str) -> bool:
    """YAML by file suffix, otherwise unless the first setting line is an INI ``[section]`` header."""
    if path.lower().endswith(_YAML_SUFFIXES):
        return True
    try:
        with open(path, "r", encoding="utf-8") as fh:
            lines = (line.strip() for line in fh)
            first = next((line for line in lines if line and line[0] not in "#;"), "")
    except OSError:
        return False
    return not first.startswith("[")


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load settings from a config file.

    Args:
        path: Path to the config file.  Defaults to ``~/.rawkeys.conf``.

    Returns:
        Option values keyed by option name (``mode`` as a RawModeSetting),
        plus ``keys``, a mapping of extra byte sequences to virtual keys,
        when the file has a keys section.  Empty if the file does not exist.

    Raises:
        ValueError: If the file cannot be parsed or holds an invalid value.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
    if not os.path.exists(path):
        return {}

    if _is_yaml(path):
        logger.debug("Loading YAML config from '%s'.", path)
        sections = _read_yaml(path)
    else:
        logger.debug("Loading INI config from '%s'.", path)
        sections = _read_ini(path)

    for name in sections:
        if name not in _SECTIONS:
            logger.warning("Unknown section '%s' in '%s'; ignoring.", name, path)

    result = _parse_defaults(sections.get("default", {}), path)
    if sections.get("keys"):
        result["keys"] = _parse_keys(sections["keys"], path)
    return result
