#!/usr/bin/env python3
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
Diagnostic log of decoded keystrokes.

Writes one JSON object per line: a SESSION_START header with the terminal
state, a KEY_EVENT record per decoded keystroke (raw bytes and the
classification), and a SESSION_END trailer. Useful for finding out which
bytes a particular terminal emulator sends for a key.
"""

import json
import logging
import os
import sys
import termios
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from rawkeys.terminal_mode import CC, CFLAG, IFLAG, ISPEED, LFLAG, OFLAG, OSPEED

if TYPE_CHECKING:
    from rawkeys.keys import DecodedEvent

logger = logging.getLogger(__name__)


class KeyEventDebugLogger:
    """
    Logger for decoded keyboard events.

    Each record carries the raw bytes (hex and repr), the decoded virtual
    key or character input, and monotonic and wall-clock timestamps.
    """

    def __init__(self, log_file_path: str = "rawkeys_debug_keys.log"):
        """
        Initialize debug logger.

        Args:
            log_file_path: Path to log file for writing debug events
        """
        self.log_file_path = log_file_path
        self.session_start = time.monotonic()
        self.event_count = 0
        self.log_file = None
        self.virtual_keys_seen: Dict[str, int] = {}

    def start_session(self, fd: Optional[int] = None) -> None:
        """
        Open the log file and write the session header.

        Args:
            fd: Terminal whose attributes go into the header.  Defaults to stdin.
        """
        try:
            # pylint: disable=consider-using-with
            self.log_file = open(self.log_file_path, "w", encoding="utf-8")
        except OSError as e:
            logger.warning("Could not open debug log file %s: %s", self.log_file_path, e)
            self.log_file = None
            return
        self._write_session_header(fd)

    def _write_session_header(self, fd: Optional[int]) -> None:
        header: Dict[str, Any] = {
            "event_type": "SESSION_START",
            "timestamp_utc": datetime.now(timezone.utc).isoformat(),
            "timestamp_monotonic": time.monotonic(),
            "python_version": sys.version,
            "platform": sys.platform,
            "terminal_type": os.environ.get("TERM", "unknown"),
            "log_format_version": "1.0",
        }

        try:
            if fd is None:
                fd = sys.stdin.fileno()
            is_tty = os.isatty(fd)
        except (AttributeError, ValueError, OSError):
            is_tty = False

        if is_tty:
            try:
                attrs = termios.tcgetattr(fd)
                header["terminal_state"] = {
                    "iflag": attrs[IFLAG],
                    "oflag": attrs[OFLAG],
                    "cflag": attrs[CFLAG],
                    "lflag": attrs[LFLAG],
                    "ispeed": attrs[ISPEED],
                    "ospeed": attrs[OSPEED],
                    "vmin": _cc_value(attrs[CC][termios.VMIN]),
                    "vtime": _cc_value(attrs[CC][termios.VTIME]),
                }
            except termios.error:
                header["terminal_state"] = "unavailable"
        else:
            header["terminal_state"] = "not_a_tty"

        self._write_event(header)

    def log_decode(self, raw_bytes: bytes, event: "DecodedEvent", notes: str = "") -> None:
        """
        Log one decoded keystroke.

        Args:
            raw_bytes: Bytes read for the keystroke
            event: Classification of those bytes
            notes: Additional notes about this event
        """
        record = {
            "event_type": "KEY_EVENT",
            "timestamp_utc": datetime.now(timezone.utc).isoformat(),
            "timestamp_monotonic": time.monotonic(),
            "elapsed_seconds": time.monotonic() - self.session_start,
            "raw_bytes_hex": raw_bytes.hex(),
            "raw_bytes_repr": repr(raw_bytes),
            "byte_count": len(raw_bytes),
            "virtual_key": event.key.name if event.key is not None else None,
            "text_hex": event.text.hex() if event.text else None,
            "notes": notes,
        }

        self.event_count += 1
        self._write_event(record)

        if event.key is not None:
            name = event.key.name
            self.virtual_keys_seen[name] = self.virtual_keys_seen.get(name, 0) + 1

    def _write_event(self, event: Dict[str, Any]) -> None:
        """Write event to log file as JSON."""
        if self.log_file:
            try:
                self.log_file.write(json.dumps(event) + "\n")
                self.log_file.flush()
            except OSError as e:
                logger.warning("Could not write to debug log file %s: %s", self.log_file_path, e)

    def close(self) -> None:
        """Write the session trailer and close the log file."""
        if self.log_file:
            self._write_event(
                {
                    "event_type": "SESSION_END",
                    "timestamp_utc": datetime.now(timezone.utc).isoformat(),
                    "timestamp_monotonic": time.monotonic(),
                    "total_events": self.event_count,
                    "virtual_keys_seen": dict(self.virtual_keys_seen),
                }
            )
            self.log_file.close()
            self.log_file = None


def _cc_value(value: Any) -> int:
    # cc entries are 1-byte bytes objects, or ints for VMIN/VTIME outside canonical mode
    if isinstance(value, bytes):
        return value[0] if value else 0
    return int(value)


# Global debug logger instance (None when debugging is disabled)
# pylint: disable=invalid-name
_debug_logger: Optional[KeyEventDebugLogger] = None


def init_debug_logger(log_file_path: str = "rawkeys_debug_keys.log", fd: Optional[int] = None) -> KeyEventDebugLogger:
    """
    Initialize global debug logger.

    Args:
        log_file_path: Path to debug log file
        fd: Terminal whose attributes go into the session header
    """
    # pylint: disable=global-statement
    global _debug_logger
    _debug_logger = KeyEventDebugLogger(log_file_path)
    _debug_logger.start_session(fd)
    return _debug_logger


def get_debug_logger() -> Optional[KeyEventDebugLogger]:
    """Get the global debug logger instance."""
    return _debug_logger


def shutdown_debug_logger() -> None:
    """Shutdown and close debug logger."""
    # pylint: disable=global-statement
    global _debug_logger
    if _debug_logger:
        _debug_logger.close()
        _debug_logger = None


def is_debug_enabled() -> bool:
    """Check if debug logging is enabled."""
    return _debug_logger is not None
