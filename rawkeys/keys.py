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
Virtual key identifiers and the escape-sequence lookup table.

A keystroke read from the terminal is either one of the virtual keys below
(function keys, cursor keys, editing keys) or plain character input. The
table maps the exact byte sequence a terminal sends for a key to its
virtual key; anything not in the table is character input.
"""

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

ESC = b"\x1b"


class VirtualKey(enum.Enum):
    """Abstract identifier for a non-character key."""

    F1 = "f1"
    F2 = "f2"
    F3 = "f3"
    F4 = "f4"
    F5 = "f5"
    F6 = "f6"
    F7 = "f7"
    F8 = "f8"
    F9 = "f9"
    F10 = "f10"
    F11 = "f11"
    F12 = "f12"
    HOME = "home"
    END = "end"
    UP_ARROW = "up_arrow"
    DOWN_ARROW = "down_arrow"
    LEFT_ARROW = "left_arrow"
    RIGHT_ARROW = "right_arrow"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    INSERT = "insert"
    DELETE = "delete"
    ESC = "esc"
    BACKSPACE = "backspace"
    ENTER = "enter"
    TAB = "tab"


# F2-F4 are listed with the "[O" prefix some emulators emit; the plain SS3
# forms ("\x1bOQ" etc.) are listed as well.
_SEQUENCES = {
    ESC: VirtualKey.ESC,
    b"\x1bOP": VirtualKey.F1,
    b"\x1bOQ": VirtualKey.F2,
    b"\x1bOR": VirtualKey.F3,
    b"\x1bOS": VirtualKey.F4,
    b"\x1b[OQ": VirtualKey.F2,
    b"\x1b[OR": VirtualKey.F3,
    b"\x1b[OS": VirtualKey.F4,
    b"\x1b[15~": VirtualKey.F5,
    b"\x1b[17~": VirtualKey.F6,
    b"\x1b[18~": VirtualKey.F7,
    b"\x1b[19~": VirtualKey.F8,
    b"\x1b[20~": VirtualKey.F9,
    b"\x1b[21~": VirtualKey.F10,
    b"\x1b[23~": VirtualKey.F11,
    b"\x1b[24~": VirtualKey.F12,
    b"\x1b[H": VirtualKey.HOME,
    b"\x1b[F": VirtualKey.END,
    b"\x1b[A": VirtualKey.UP_ARROW,
    b"\x1b[B": VirtualKey.DOWN_ARROW,
    b"\x1b[C": VirtualKey.RIGHT_ARROW,
    b"\x1b[D": VirtualKey.LEFT_ARROW,
    b"\x1b[5~": VirtualKey.PAGE_UP,
    b"\x1b[6~": VirtualKey.PAGE_DOWN,
    b"\x1b[2~": VirtualKey.INSERT,
    b"\x1b[3~": VirtualKey.DELETE,
    b"\x7f": VirtualKey.BACKSPACE,
    b"\n": VirtualKey.ENTER,
    # Enter arrives untranslated once ICRNL is cleared
    b"\r": VirtualKey.ENTER,
    b"\t": VirtualKey.TAB,
}

VIRTUAL_KEY_TABLE: Mapping[bytes, VirtualKey] = MappingProxyType(_SEQUENCES)


def extend_table(
    extra: Mapping[bytes, VirtualKey],
    base: Mapping[bytes, VirtualKey] = VIRTUAL_KEY_TABLE,
) -> Mapping[bytes, VirtualKey]:
    """
    Return a new read-only table with additional sequences for existing keys.

    Raises:
        ValueError: If a sequence in ``extra`` already means a different key.
    """
    merged = dict(base)
    for sequence, key in extra.items():
        current = merged.get(sequence)
        if current is not None and current is not key:
            raise ValueError(f"{sequence!r} already decodes as {current.name}, not {key.name}")
        merged[sequence] = key
    return MappingProxyType(merged)


@dataclass(frozen=True)
class DecodedEvent:
    """
    Result of one decode cycle.

    Exactly one of ``key`` and ``text`` is meaningful: a recognized virtual
    key carries no raw bytes, and character input carries the bytes as read.
    Use :meth:`virtual` and :meth:`literal` rather than the constructor.
    """

    key: Optional[VirtualKey] = None
    text: bytes = b""

    def __post_init__(self) -> None:
        if self.key is not None and self.text:
            raise ValueError("A decoded event is either a virtual key or character input, not both.")
        if self.key is None and not self.text:
            raise ValueError("Character input must carry at least one byte.")

    @classmethod
    def virtual(cls, key: VirtualKey) -> "DecodedEvent":
        return cls(key=key)

    @classmethod
    def literal(cls, data: bytes) -> "DecodedEvent":
        return cls(text=bytes(data))

    @property
    def is_virtual_key(self) -> bool:
        return self.key is not None

    def __str__(self) -> str:
        if self.key is not None:
            return f"vk {self.key.name}"
        return f"char {self.text!r}"


def classify(data: bytes, table: Mapping[bytes, VirtualKey] = VIRTUAL_KEY_TABLE) -> DecodedEvent:
    """
    Classify an accumulated byte sequence.

    Args:
        data: All bytes read for one keystroke
        table: Sequence-to-key mapping to consult

    Returns:
        The virtual key event on an exact table match, otherwise a
        character-input event holding ``data`` unchanged.
    """
    key = table.get(bytes(data))
    if key is not None:
        return DecodedEvent.virtual(key)
    return DecodedEvent.literal(data)
