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
rawkeys package - raw terminal keyboard input and virtual key decoding.
"""

import logging

from rawkeys.decoder import KeyDecoder, decode_keystroke
from rawkeys.keys import VIRTUAL_KEY_TABLE, DecodedEvent, VirtualKey, extend_table
from rawkeys.terminal_mode import (
    RawKeysError,
    RawModeSetting,
    TerminalModeController,
    TerminalModeError,
    WaitPolicy,
    raw_terminal,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "1.0.0"

__all__ = [
    "DecodedEvent",
    "KeyDecoder",
    "RawKeysError",
    "RawModeSetting",
    "TerminalModeController",
    "TerminalModeError",
    "VIRTUAL_KEY_TABLE",
    "VirtualKey",
    "WaitPolicy",
    "decode_keystroke",
    "extend_table",
    "raw_terminal",
]
