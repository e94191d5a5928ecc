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
Unit tests for rawkeys.decoder - keystroke decoding and ESC disambiguation.

Tests cover:
  - Decoding against a scripted terminal (deterministic read results)
  - The read pattern: one waiting read, then two polling reads after ESC
  - Truncation of sequences longer than the follow-up capacity
  - PTY based tests where bytes travel through a real line discipline
  - The readchar based keystroke path
"""

import os
import pty
import select
import sys
import time
import unittest
from typing import Any, List, Optional, Tuple
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

import readchar  # noqa: E402

from rawkeys.decoder import (  # noqa: E402, isort: skip
    FOLLOW_UP_CAPACITY,
    MAX_SEQUENCE_LENGTH,
    KeyDecoder,
    decode_keystroke,
    read_keystroke,
)
from rawkeys.keys import VIRTUAL_KEY_TABLE, DecodedEvent, VirtualKey  # noqa: E402
from rawkeys.terminal_mode import RawModeSetting, TerminalModeController  # noqa: E402

# ESC, '[', and ten more bytes: the longest sequence one decode cycle accepts
TWELVE_BYTE_SEQUENCE = b"\x1b[1234567890"


class ScriptedTerminal:
    """Stands in for TerminalModeController: serves queued bytes, records reads."""

    def __init__(self, data: bytes = b"") -> None:
        self.pending = bytearray(data)
        self.reads: List[Tuple[int, bool, Optional[RawModeSetting], bool]] = []

    def read_raw(
        self,
        size: int = 1,
        wait_for_input: bool = True,
        mode: Optional[RawModeSetting] = None,
        flush: bool = False,
    ) -> bytes:
        self.reads.append((size, wait_for_input, mode, flush))
        chunk = bytes(self.pending[:size])
        del self.pending[:size]
        return chunk


class TestDecodeNextEvent(unittest.TestCase):
    """decode_next_event() against scripted input."""

    def _decode(self, data: bytes, **kwargs: Any) -> DecodedEvent:
        return KeyDecoder(ScriptedTerminal(data), **kwargs).decode_next_event()  # type: ignore[arg-type]

    def test_every_table_entry_decodes(self) -> None:
        for seq, key in VIRTUAL_KEY_TABLE.items():
            terminal = ScriptedTerminal(seq)
            event = KeyDecoder(terminal).decode_next_event()  # type: ignore[arg-type]
            self.assertEqual(event, DecodedEvent.virtual(key), f"Failed for bytes {seq!r}")
            self.assertEqual(terminal.pending, b"", f"Leftover bytes for {seq!r}")

    def test_bare_escape(self) -> None:
        self.assertEqual(self._decode(b"\x1b"), DecodedEvent.virtual(VirtualKey.ESC))

    def test_up_arrow(self) -> None:
        self.assertEqual(self._decode(b"\x1b[A").key, VirtualKey.UP_ARROW)

    def test_printable_character(self) -> None:
        event = self._decode(b"a")
        self.assertFalse(event.is_virtual_key)
        self.assertEqual(event.text, b"a")

    def test_enter_tab_backspace_are_virtual_keys(self) -> None:
        self.assertEqual(self._decode(b"\n").key, VirtualKey.ENTER)
        self.assertEqual(self._decode(b"\t").key, VirtualKey.TAB)
        self.assertEqual(self._decode(b"\x7f").key, VirtualKey.BACKSPACE)

    def test_unknown_sequence_is_literal(self) -> None:
        self.assertEqual(self._decode(b"\x1b[5;10H"), DecodedEvent.literal(b"\x1b[5;10H"))

    def test_alt_letter_is_literal_pair(self) -> None:
        self.assertEqual(self._decode(b"\x1bx"), DecodedEvent.literal(b"\x1bx"))

    def test_only_one_byte_read_for_plain_character(self) -> None:
        terminal = ScriptedTerminal(b"ab")
        event = KeyDecoder(terminal).decode_next_event()  # type: ignore[arg-type]
        self.assertEqual(event.text, b"a")
        self.assertEqual(terminal.pending, b"b")
        self.assertEqual(terminal.reads, [(1, True, RawModeSetting.IMMEDIATE_NO_ECHO, False)])

    def test_read_pattern_after_escape(self) -> None:
        terminal = ScriptedTerminal(b"\x1b[15~")
        KeyDecoder(terminal, mode=RawModeSetting.IMMEDIATE_NO_ECHO_IGNORE_SIGNALS).decode_next_event()  # type: ignore[arg-type]
        mode = RawModeSetting.IMMEDIATE_NO_ECHO_IGNORE_SIGNALS
        self.assertEqual(
            terminal.reads,
            [(1, True, mode, False), (1, False, mode, False), (FOLLOW_UP_CAPACITY, False, mode, False)],
        )

    def test_bare_escape_skips_second_follow_up_read(self) -> None:
        terminal = ScriptedTerminal(b"\x1b")
        KeyDecoder(terminal).decode_next_event()  # type: ignore[arg-type]
        self.assertEqual(len(terminal.reads), 2)

    def test_longest_sequence_matches(self) -> None:
        self.assertEqual(len(TWELVE_BYTE_SEQUENCE), MAX_SEQUENCE_LENGTH)
        table = {TWELVE_BYTE_SEQUENCE: VirtualKey.F12}
        self.assertEqual(self._decode(TWELVE_BYTE_SEQUENCE, table=table).key, VirtualKey.F12)

    def test_one_byte_longer_is_truncated(self) -> None:
        too_long = TWELVE_BYTE_SEQUENCE + b"X"
        table = {too_long: VirtualKey.F12}
        terminal = ScriptedTerminal(too_long)
        decoder = KeyDecoder(terminal, table=table)  # type: ignore[arg-type]
        self.assertEqual(decoder.decode_next_event(), DecodedEvent.literal(TWELVE_BYTE_SEQUENCE))
        # The cut-off byte is the next keystroke
        self.assertEqual(decoder.decode_next_event(), DecodedEvent.literal(b"X"))

    def test_eof_raises(self) -> None:
        with self.assertRaises(EOFError):
            self._decode(b"")

    def test_events_stop_at_eof(self) -> None:
        decoder = KeyDecoder(ScriptedTerminal(b"a\x1b[Bq"))  # type: ignore[arg-type]
        self.assertEqual(
            list(decoder.events()),
            [
                DecodedEvent.literal(b"a"),
                DecodedEvent.virtual(VirtualKey.DOWN_ARROW),
                DecodedEvent.literal(b"q"),
            ],
        )

    def test_debug_logger_receives_raw_bytes(self) -> None:
        debug_logger = MagicMock()
        event = self._decode(b"\x1b[D", debug_logger=debug_logger)
        debug_logger.log_decode.assert_called_once_with(b"\x1b[D", event)

    def test_global_debug_logger_used_when_none_given(self) -> None:
        debug_logger = MagicMock()
        with patch("rawkeys.decoder.get_debug_logger", return_value=debug_logger):
            self._decode(b"z")
        debug_logger.log_decode.assert_called_once_with(b"z", DecodedEvent.literal(b"z"))


class TestDecoderOnPTY(unittest.TestCase):
    """Bytes written to the PTY master are decoded from the slave."""

    def setUp(self) -> None:
        self.master_fd, self.slave_fd = pty.openpty()
        self.controller = TerminalModeController(self.slave_fd)
        self.controller.enter_raw_mode()
        self.decoder = KeyDecoder(self.controller)

    def tearDown(self) -> None:
        self.controller.restore_mode()
        for fd in (self.master_fd, self.slave_fd):
            try:
                os.close(fd)
            except OSError:
                pass

    def _type(self, data: bytes) -> None:
        os.write(self.master_fd, data)
        ready, _, _ = select.select([self.slave_fd], [], [], 1.0)
        self.assertTrue(ready, "Slave fd should be readable within 1 s")
        time.sleep(0.02)

    def test_arrow_keys(self) -> None:
        cases = [
            (b"\x1b[A", VirtualKey.UP_ARROW),
            (b"\x1b[B", VirtualKey.DOWN_ARROW),
            (b"\x1b[C", VirtualKey.RIGHT_ARROW),
            (b"\x1b[D", VirtualKey.LEFT_ARROW),
        ]
        for raw, expected in cases:
            self._type(raw)
            self.assertEqual(self.decoder.decode_next_event().key, expected, f"Failed for bytes {raw!r}")

    def test_function_key(self) -> None:
        self._type(b"\x1b[17~")
        self.assertEqual(self.decoder.decode_next_event().key, VirtualKey.F6)

    def test_bare_escape_after_timeout(self) -> None:
        self._type(b"\x1b")
        start = time.monotonic()
        event = self.decoder.decode_next_event()
        elapsed = time.monotonic() - start
        self.assertEqual(event.key, VirtualKey.ESC)
        self.assertLess(elapsed, 1.0)

    def test_typed_ahead_keys_are_not_lost(self) -> None:
        self._type(b"ab\x1b[H")
        self.assertEqual(self.decoder.decode_next_event(), DecodedEvent.literal(b"a"))
        self.assertEqual(self.decoder.decode_next_event(), DecodedEvent.literal(b"b"))
        self.assertEqual(self.decoder.decode_next_event().key, VirtualKey.HOME)

    def test_carriage_return_reaches_enter(self) -> None:
        self._type(b"\r")
        self.assertEqual(self.decoder.decode_next_event().key, VirtualKey.ENTER)

    def test_truncation_boundary(self) -> None:
        decoder = KeyDecoder(self.controller, table={TWELVE_BYTE_SEQUENCE: VirtualKey.F1})
        self._type(TWELVE_BYTE_SEQUENCE)
        self.assertEqual(decoder.decode_next_event().key, VirtualKey.F1)

        self._type(TWELVE_BYTE_SEQUENCE + b"0")
        self.assertEqual(decoder.decode_next_event(), DecodedEvent.literal(TWELVE_BYTE_SEQUENCE))
        self.assertEqual(decoder.decode_next_event(), DecodedEvent.literal(b"0"))


class TestReadcharKeystrokes(unittest.TestCase):
    """Keystroke strings in readchar's format use the same table."""

    def test_readchar_arrow_constants(self) -> None:
        self.assertEqual(decode_keystroke(readchar.key.UP).key, VirtualKey.UP_ARROW)
        self.assertEqual(decode_keystroke(readchar.key.DOWN).key, VirtualKey.DOWN_ARROW)
        self.assertEqual(decode_keystroke(readchar.key.LEFT).key, VirtualKey.LEFT_ARROW)
        self.assertEqual(decode_keystroke(readchar.key.RIGHT).key, VirtualKey.RIGHT_ARROW)

    def test_plain_character(self) -> None:
        self.assertEqual(decode_keystroke("q"), DecodedEvent.literal(b"q"))

    def test_lone_escape(self) -> None:
        self.assertEqual(decode_keystroke("\x1b").key, VirtualKey.ESC)

    def test_empty_keystroke_rejected(self) -> None:
        with self.assertRaises(ValueError):
            decode_keystroke("")

    @patch("rawkeys.decoder.readchar.readkey", return_value="\x1b[3~")
    def test_read_keystroke(self, _mock_readkey: Any) -> None:
        self.assertEqual(read_keystroke().key, VirtualKey.DELETE)

    @patch("rawkeys.decoder.readchar.readkey", side_effect=KeyboardInterrupt)
    def test_read_keystroke_propagates_keyboard_interrupt(self, _mock_readkey: Any) -> None:
        with self.assertRaises(KeyboardInterrupt):
            read_keystroke()


if __name__ == "__main__":
    unittest.main()
