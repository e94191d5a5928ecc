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
Terminal line-discipline control for raw keyboard input.

A TerminalModeController owns one terminal file descriptor. Creating it
captures the terminal attributes once; every raw-mode transition afterwards
is a read-modify-write of the live attributes, and restore_mode() always
puts back the attributes captured at construction.

Use the raw_mode() method or the raw_terminal() context manager so the
terminal is restored on every exit path from the block::

    with raw_terminal() as terminal:
        data = terminal.read_raw()

Restoration cannot run when the process is killed by a signal that cannot
be caught (SIGKILL). Both scoped forms convert SIGTERM and SIGHUP into
SystemExit so those termination requests still unwind through it.
"""

import contextlib
import copy
import enum
import logging
import os
import signal
import sys
import termios
import threading
from typing import Any, Dict, Generator, List, NamedTuple, Optional

logger = logging.getLogger(__name__)

# Indices into the list returned by termios.tcgetattr()
IFLAG = 0
OFLAG = 1
CFLAG = 2
LFLAG = 3
ISPEED = 4
OSPEED = 5
CC = 6

_TERMINATION_SIGNALS = ("SIGTERM", "SIGHUP")


class RawKeysError(Exception):
    """Base exception for rawkeys errors."""


class TerminalModeError(RawKeysError):
    """Querying or changing the terminal attributes failed."""


class RawModeSetting(enum.Enum):
    """How much of the terminal's default input handling is switched off."""

    # Echo and line buffering off; Ctrl-C, Ctrl-Z and friends still signal.
    IMMEDIATE_NO_ECHO = "immediate_no_echo"
    # Additionally no signal keys, no Ctrl-S/Ctrl-Q flow control, no Ctrl-V,
    # no CR->NL translation and no output post-processing.
    IMMEDIATE_NO_ECHO_IGNORE_SIGNALS = "immediate_no_echo_ignore_signals"


class WaitPolicy(NamedTuple):
    """VMIN/VTIME pair governing how a single read() behaves."""

    min_bytes: int
    timeout_deciseconds: int

    @classmethod
    def for_wait(cls, wait_for_input: bool) -> "WaitPolicy":
        """Block for at least one byte, or poll with a tenth-of-a-second timeout."""
        if wait_for_input:
            return cls(min_bytes=1, timeout_deciseconds=0)
        return cls(min_bytes=0, timeout_deciseconds=1)


def make_raw_attributes(attrs: List[Any], mode: RawModeSetting, policy: WaitPolicy) -> List[Any]:
    """
    Compute raw-mode attributes from a tcgetattr() result.

    Only the flags selected by ``mode`` and the VMIN/VTIME control characters
    are changed; every other attribute is carried over. ``attrs`` itself is
    not modified.

    Args:
        attrs: Attribute list as returned by termios.tcgetattr()
        mode: Which flags to clear
        policy: Minimum byte count and timeout for reads

    Returns:
        New attribute list suitable for termios.tcsetattr()
    """
    new = copy.deepcopy(attrs)
    if mode is RawModeSetting.IMMEDIATE_NO_ECHO:
        new[LFLAG] &= ~(termios.ECHO | termios.ICANON)
    elif mode is RawModeSetting.IMMEDIATE_NO_ECHO_IGNORE_SIGNALS:
        new[IFLAG] &= ~(termios.ICRNL | termios.IXON)
        new[OFLAG] &= ~termios.OPOST
        new[LFLAG] &= ~(termios.ECHO | termios.ICANON | termios.IEXTEN | termios.ISIG)
    else:
        raise ValueError(f"Unknown raw mode setting: {mode!r}")
    new[CC][termios.VMIN] = policy.min_bytes
    new[CC][termios.VTIME] = policy.timeout_deciseconds
    return new


class TerminalModeController:
    """
    Switches one terminal between its original and a raw line discipline.

    The attributes in effect when the controller is created are the
    snapshot; it is never replaced, so restore_mode() is correct no matter
    how many raw-mode transitions happened in between.
    """

    def __init__(self, fd: Optional[int] = None) -> None:
        """
        Capture the terminal attributes of ``fd``.

        Args:
            fd: Terminal file descriptor.  Defaults to ``sys.stdin.fileno()``.

        Raises:
            TerminalModeError: If ``fd`` is not a terminal or cannot be queried.
        """
        if fd is None:
            fd = sys.stdin.fileno()
        self.fd = fd
        self._snapshot = self._get_attributes()
        self.current_mode: Optional[RawModeSetting] = None
        logger.debug(
            "Captured terminal attributes of fd %d (VMIN=%r, VTIME=%r)",
            fd,
            self._snapshot[CC][termios.VMIN],
            self._snapshot[CC][termios.VTIME],
        )

    @property
    def snapshot(self) -> List[Any]:
        """Copy of the attributes captured at construction."""
        return copy.deepcopy(self._snapshot)

    @property
    def in_raw_mode(self) -> bool:
        return self.current_mode is not None

    def _get_attributes(self) -> List[Any]:
        try:
            return termios.tcgetattr(self.fd)
        except termios.error as exc:
            raise TerminalModeError(f"Cannot read terminal attributes of fd {self.fd}: {exc}") from exc

    def _set_attributes(self, attrs: List[Any], when: int) -> None:
        try:
            termios.tcsetattr(self.fd, when, attrs)
        except termios.error as exc:
            raise TerminalModeError(f"Cannot set terminal attributes of fd {self.fd}: {exc}") from exc

    def enter_raw_mode(
        self,
        wait_for_input: bool = True,
        mode: RawModeSetting = RawModeSetting.IMMEDIATE_NO_ECHO,
        flush: bool = True,
    ) -> None:
        """
        Put the terminal into raw mode.

        Args:
            wait_for_input: Block reads until a byte arrives, or poll for a
                tenth of a second
            mode: Which parts of the default line discipline to disable
            flush: Drain pending output and discard unread input when the
                change takes effect.  Pass False to switch the wait policy
                without losing bytes that are already queued.

        Raises:
            TerminalModeError: If the attributes cannot be read or set.
        """
        policy = WaitPolicy.for_wait(wait_for_input)
        raw = make_raw_attributes(self._get_attributes(), mode, policy)
        self._set_attributes(raw, termios.TCSAFLUSH if flush else termios.TCSANOW)
        self.current_mode = mode
        logger.debug(
            "fd %d in %s mode (VMIN=%d, VTIME=%d)",
            self.fd,
            mode.value,
            policy.min_bytes,
            policy.timeout_deciseconds,
        )

    def restore_mode(self) -> None:
        """Reapply the captured attributes.  Safe to call more than once."""
        self._set_attributes(self._snapshot, termios.TCSAFLUSH)
        if self.current_mode is not None:
            logger.debug("Restored original terminal attributes of fd %d", self.fd)
        self.current_mode = None

    def read_raw(
        self,
        size: int = 1,
        wait_for_input: bool = True,
        mode: Optional[RawModeSetting] = None,
        flush: bool = False,
    ) -> bytes:
        """
        Enter raw mode with the given wait policy and read up to ``size`` bytes.

        Args:
            size: Maximum number of bytes to return
            wait_for_input: Block until input arrives, or give up after a
                tenth of a second
            mode: Raw mode setting; defaults to the one currently in effect,
                or IMMEDIATE_NO_ECHO when the terminal is not in raw mode
            flush: Passed to enter_raw_mode()

        Returns:
            The bytes read; empty when a polling read timed out
        """
        if mode is None:
            mode = self.current_mode or RawModeSetting.IMMEDIATE_NO_ECHO
        self.enter_raw_mode(wait_for_input, mode, flush=flush)
        return os.read(self.fd, size)

    @contextlib.contextmanager
    def raw_mode(
        self,
        wait_for_input: bool = True,
        mode: RawModeSetting = RawModeSetting.IMMEDIATE_NO_ECHO,
        handle_signals: bool = True,
    ) -> Generator["TerminalModeController", None, None]:
        """
        Context manager that enters raw mode and restores the terminal on exit.

        The terminal is restored when the block exits normally, raises, or is
        interrupted by SIGTERM/SIGHUP (when ``handle_signals`` is true).

        Args:
            wait_for_input: Initial wait policy
            mode: Raw mode setting to enter
            handle_signals: Convert SIGTERM/SIGHUP into SystemExit inside the block
        """
        previous = _install_termination_handlers() if handle_signals else {}
        try:
            self.enter_raw_mode(wait_for_input, mode)
            yield self
        finally:
            try:
                self.restore_mode()
            finally:
                _restore_handlers(previous)


def _raise_system_exit(signum: int, _frame: Any) -> None:
    raise SystemExit(128 + signum)


def _install_termination_handlers() -> Dict[int, Any]:
    """Route SIGTERM/SIGHUP through SystemExit; return the handlers replaced."""
    previous: Dict[int, Any] = {}
    if threading.current_thread() is not threading.main_thread():
        # signal.signal() only works in the main thread
        return previous
    for name in _TERMINATION_SIGNALS:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        previous[signum] = signal.getsignal(signum)
        signal.signal(signum, _raise_system_exit)
    return previous


def _restore_handlers(previous: Dict[int, Any]) -> None:
    for signum, handler in previous.items():
        # getsignal() returns None for handlers not installed from Python
        signal.signal(signum, signal.SIG_DFL if handler is None else handler)


@contextlib.contextmanager
def raw_terminal(
    fd: Optional[int] = None,
    mode: RawModeSetting = RawModeSetting.IMMEDIATE_NO_ECHO,
    wait_for_input: bool = True,
    handle_signals: bool = True,
) -> Generator[TerminalModeController, None, None]:
    """
    Context manager that owns a terminal in raw mode for the duration of the block.

    The terminal is restored when the block exits normally, raises, or is
    interrupted by SIGTERM/SIGHUP (when ``handle_signals`` is true).

    Args:
        fd: Terminal file descriptor.  Defaults to ``sys.stdin.fileno()``.
        mode: Raw mode setting to enter
        wait_for_input: Initial wait policy
        handle_signals: Convert SIGTERM/SIGHUP into SystemExit inside the block

    Yields:
        The TerminalModeController for the terminal.

    Raises:
        TerminalModeError: If ``fd`` is not a terminal or cannot be configured.
    """
    controller = TerminalModeController(fd)
    with controller.raw_mode(wait_for_input, mode, handle_signals=handle_signals):
        yield controller
