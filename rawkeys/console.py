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

"""Console size query and the column ruler printed by the key echo demo."""

import os
import sys
from typing import NamedTuple, Tuple


class ConsoleSize(NamedTuple):
    rows: int
    columns: int


def get_console_size(fallback: Tuple[int, int] = (80, 24)) -> ConsoleSize:
    """
    Get the console size by directly querying the terminal.

    Tries stdout, then stderr, then stdin, so the size is still found when
    one of them is redirected.

    Args:
        fallback: Tuple of (columns, lines) used when no stream is a terminal

    Returns:
        ConsoleSize with rows and columns
    """
    for stream in (sys.stdout, sys.stderr, sys.stdin):
        try:
            if stream.isatty():
                size = os.get_terminal_size(stream.fileno())
                return ConsoleSize(rows=size.lines, columns=size.columns)
        except (AttributeError, ValueError, OSError):
            continue
    columns, lines = fallback
    return ConsoleSize(rows=lines, columns=columns)


def column_ruler(columns: int) -> str:
    """Return a line of repeating digits 0-9 spanning ``columns``, ending in '*'."""
    if columns <= 0:
        return ""
    return "".join(str(i % 10) for i in range(columns - 1)) + "*"
