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
# Review for correctness and security.

"""
Command-line interface for rawkeys.

Echoes every keystroke typed at the terminal as either a virtual key name
or character input until the quit key is pressed.
"""

import argparse
import functools
import logging
import os
import sys
from typing import Any, Callable, Dict, List, Optional

from rawkeys.config import load_config, parse_mode, parse_quit_key
from rawkeys.console import column_ruler, get_console_size
from rawkeys.debug_logger import init_debug_logger, shutdown_debug_logger
from rawkeys.decoder import KeyDecoder, read_keystroke
from rawkeys.keys import VIRTUAL_KEY_TABLE, DecodedEvent, extend_table
from rawkeys.terminal_mode import RawModeSetting, TerminalModeError, raw_terminal

logger = logging.getLogger(__name__)

# Output post-processing may be off while echoing, so lines end in CRLF
_EOL = "\r\n"


def _configure_logging(log_level: str, log_file: Optional[str]) -> None:
    """Configure logging handlers for CLI execution."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(os.path.expanduser(log_file), encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


# Hardcoded defaults for config-overridable fields.
# Applied after config merging for any field still set to None.
_HARDCODED_DEFAULTS: Dict[str, Any] = {
    "mode": RawModeSetting.IMMEDIATE_NO_ECHO.value,
    "backend": "termios",
    "quit_key": "q",
    "show_bytes": False,
    "log_level": "INFO",
}


def _apply_config_to_args(args: argparse.Namespace, config: Dict[str, Any]) -> None:
    """
    Overlay config file values onto a parsed argument namespace.

    Only fields that are still ``None`` (i.e. not explicitly set on the CLI)
    are updated.

    Args:
        args: Namespace returned by ``argparse.ArgumentParser.parse_args()``.
        config: Dictionary of values loaded from the config file.
    """
    for key, value in config.items():
        if hasattr(args, key) and getattr(args, key) is None:
            setattr(args, key, value)


def handle_options(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse and validate command-line arguments."""
    parser = argparse.ArgumentParser(
        description="rawkeys - Show how each keystroke decodes in raw terminal mode",
        epilog="Escape sequences are collected for at most a tenth of a second after ESC.",
    )
    parser.add_argument(
        "-m",
        "--mode",
        type=str,
        default=None,
        choices=[setting.value for setting in RawModeSetting],
        help="Raw mode setting for the termios backend (default: immediate_no_echo)",
    )
    parser.add_argument(
        "-b",
        "--backend",
        type=str,
        default=None,
        choices=["termios", "readchar"],
        help="Key reader: termios (timed escape decoding) or readchar (default: termios)",
    )
    parser.add_argument(
        "-q",
        "--quit-key",
        type=str,
        default=None,
        help="Character that ends the session (default: q)",
    )
    parser.add_argument(
        "-x",
        "--show-bytes",
        action="store_true",
        default=None,
        help="Also print the bytes of character input in hex",
    )
    parser.add_argument(
        "--debug-log",
        type=str,
        default=None,
        help="Write a JSON-lines record of every decoded keystroke to this file",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Optional log file path for persistent logging",
    )
    parser.add_argument(
        "--no-config",
        action="store_true",
        default=False,
        help="Skip loading ~/.rawkeys.conf config file",
    )

    args = parser.parse_args(argv)
    mode_on_command_line = args.mode is not None

    # Load and apply config file unless --no-config was given
    config: Dict[str, Any] = {}
    if not args.no_config:
        try:
            config = load_config()
        except ValueError as exc:
            parser.error(str(exc))
        _apply_config_to_args(args, config)

    # Apply hardcoded defaults for any config-overridable field still at None
    for field, default in _HARDCODED_DEFAULTS.items():
        if getattr(args, field, None) is None:
            setattr(args, field, default)

    if mode_on_command_line and args.backend == "readchar":
        parser.error("--mode only applies to the termios backend.")
    args.mode = parse_mode(args.mode)
    args.key_table = extend_table(config.get("keys", {}))
    try:
        parse_quit_key(args.quit_key, args.key_table)
    except ValueError as exc:
        parser.error(f"--quit-key: {exc}")
    return args


def format_event(event: DecodedEvent, raw: Optional[bytes] = None) -> str:
    """Render a decoded event as one line of demo output (without line ending)."""
    if event.key is not None:
        line = f"vk        input - {event.key.name}"
    else:
        line = f"character input - {event.text.decode('utf-8', errors='backslashreplace')!r}"
    if raw is not None:
        line += f"  [{raw.hex(' ')}]"
    return line


def _write_line(text: str) -> None:
    sys.stdout.write(text + _EOL)
    sys.stdout.flush()


def echo_events(
    next_event: Callable[[], DecodedEvent],
    quit_key: str,
    show_bytes: bool = False,
) -> int:
    """
    Print decoded events until the quit key arrives as character input.

    Args:
        next_event: Callable returning the next decoded event
        quit_key: Character that stops the loop
        show_bytes: Append the hex bytes of character input

    Returns:
        Number of events echoed, not counting the quit key
    """
    quit_bytes = quit_key.encode("utf-8")
    count = 0
    while True:
        event = next_event()
        if event.text == quit_bytes:
            return count
        _write_line(format_event(event, event.text if show_bytes and event.text else None))
        count += 1


def run(args: argparse.Namespace) -> int:
    """Run the key echo loop; returns the process exit status."""
    _configure_logging(getattr(args, "log_level", "INFO"), getattr(args, "log_file", None))

    size = get_console_size()
    _write_line(f"text({size.rows} {size.columns})")
    _write_line(column_ruler(size.columns))

    mode = RawModeSetting(args.mode)
    table = getattr(args, "key_table", VIRTUAL_KEY_TABLE)
    if args.debug_log:
        init_debug_logger(args.debug_log)
    try:
        if args.backend == "readchar":
            count = echo_events(functools.partial(read_keystroke, table), args.quit_key, args.show_bytes)
        else:
            with raw_terminal(mode=mode) as terminal:
                decoder = KeyDecoder(terminal, mode=mode, table=table)
                count = echo_events(decoder.decode_next_event, args.quit_key, args.show_bytes)
    except TerminalModeError as exc:
        logger.error("Cannot switch the terminal to raw mode: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        return 130
    except EOFError:
        logger.info("Input closed.")
        return 0
    finally:
        shutdown_debug_logger()

    logger.debug("Echoed %d keystrokes", count)
    return 0


def main() -> None:
    """Main entrypoint for the CLI - parses arguments and runs the application."""
    args = handle_options()
    sys.exit(run(args))
