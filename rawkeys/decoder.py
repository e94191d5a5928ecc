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
Keystroke decoding on top of a raw-mode terminal.

A lone ESC byte is both a complete key (the Escape key) and the first byte
of every escape sequence, and escape sequences carry no length. The decoder
tells them apart by timing: after reading ESC it polls once more for a
tenth of a second. Nothing arriving means the Escape key was pressed;
otherwise the rest of the sequence is collected with one more short read.

The readchar library provides an alternative, portable way to read keys;
decode_keystroke() classifies its results with the same table.
"""

import logging
import time
from typing import Iterator, Mapping, Optional

import readchar

from rawkeys.debug_logger import KeyEventDebugLogger, get_debug_logger
from rawkeys.keys import ESC, VIRTUAL_KEY_TABLE, DecodedEvent, VirtualKey, classify
from rawkeys.terminal_mode import RawModeSetting, TerminalModeController

logger = logging.getLogger(__name__)

# Bytes accepted after ESC and the byte immediately following it. Longer
# sequences are truncated and end up classified as character input.
FOLLOW_UP_CAPACITY = 10
MAX_SEQUENCE_LENGTH = 2 + FOLLOW_UP_CAPACITY


class KeyDecoder:
    """Reads one keystroke at a time from a terminal and classifies it."""

    def __init__(
        self,
        controller: TerminalModeController,
        mode: RawModeSetting = RawModeSetting.IMMEDIATE_NO_ECHO,
        table: Mapping[bytes, VirtualKey] = VIRTUAL_KEY_TABLE,
        debug_logger: Optional[KeyEventDebugLogger] = None,
    ) -> None:
        self.controller = controller
        self.mode = mode
        self.table = table
        self.debug_logger = debug_logger

    def _read(self, size: int, wait_for_input: bool) -> bytes:
        # flush=False: switching VMIN/VTIME must not discard queued bytes
        return self.controller.read_raw(size, wait_for_input=wait_for_input, mode=self.mode, flush=False)

    def read_sequence(self) -> bytes:
        """
        Read the bytes of one keystroke.

        Blocks until the first byte arrives. After an ESC byte, waits at most
        a tenth of a second for each of the two follow-up reads.

        Returns:
            The accumulated byte sequence (at most MAX_SEQUENCE_LENGTH bytes)

        Raises:
            EOFError: If the terminal input is closed.
        """
        first = self._read(1, wait_for_input=True)
        if not first:
            raise EOFError("Terminal input closed")

        sequence = bytearray(first)
        if first == ESC:
            immediate_next = self._read(1, wait_for_input=False)
            if immediate_next:
                sequence.extend(immediate_next)
                sequence.extend(self._read(FOLLOW_UP_CAPACITY, wait_for_input=False))
        return bytes(sequence)

    def decode_next_event(self) -> DecodedEvent:
        """Read one keystroke and return it as a virtual key or character input."""
        data = self.read_sequence()
        event = classify(data, self.table)
        logger.debug("Decoded %s from %s", event, data.hex())

        debug_logger = self.debug_logger or get_debug_logger()
        if debug_logger is not None:
            debug_logger.log_decode(data, event)
        return event

    def events(self) -> Iterator[DecodedEvent]:
        """Yield decoded events until the terminal input is closed."""
        while True:
            try:
                yield self.decode_next_event()
            except EOFError:
                return


def decode_keystroke(keystroke: str, table: Mapping[bytes, VirtualKey] = VIRTUAL_KEY_TABLE) -> DecodedEvent:
    """
    Classify a keystroke string such as the ones readchar.readkey() returns.

    Args:
        keystroke: One key as text, e.g. "a" or "\\x1b[A"
        table: Sequence-to-key mapping to consult

    Returns:
        The decoded event

    Raises:
        ValueError: If ``keystroke`` is empty.
    """
    if not keystroke:
        raise ValueError("Cannot decode an empty keystroke.")
    return classify(keystroke.encode("utf-8"), table)


def read_keystroke(table: Mapping[bytes, VirtualKey] = VIRTUAL_KEY_TABLE) -> DecodedEvent:
    """Read one key from stdin with readchar and classify it."""
    start = time.monotonic()
    keystroke = readchar.readkey()
    event = decode_keystroke(keystroke, table)
    logger.debug("readchar key %r decoded as %s after %.3fs", keystroke, event, time.monotonic() - start)

    debug_logger = get_debug_logger()
    if debug_logger is not None:
        debug_logger.log_decode(keystroke.encode("utf-8"), event, notes="readchar")
    return event
