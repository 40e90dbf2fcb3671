# Copyright (c) TurnKey GNU/Linux - https://www.turnkeylinux.org
#
# This file is part of Umount-chroots
#
# Umount-chroots is free software; you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License as published by the
# Free Software Foundation; either version 3 of the License, or (at your
# option) any later version.

import os
import signal
import time
from collections.abc import Callable, Iterable
from logging import getLogger

from . import common, mounts
from .chroots import Chroot, NotFound
from .occupants import ProcessTable, find_occupants

logger = getLogger("umount-chroots.unmount")

# tries value that never gives up waiting
UNLIMITED: float = float("inf")


class Error(Exception):
    pass


class InUse(Error):
    pass


class Aborted(Error):
    pass


class Options:
    def __init__(
            self, chroots_path: str,
            tries: float = 5,
            kill: bool = False,
            yes: bool = False,
            force: bool = False,
            print_processes: bool = False):
        self.chroots_path = chroots_path
        self.tries = tries
        self.kill = kill
        self.yes = yes
        self.force = force
        self.print_processes = print_processes


class Prompt:
    """asks whether to signal the processes blocking a chroot"""

    CHOICES = "[a]bort [k]ill [y]es [N]o"

    def ask(self, question: str) -> str:
        raise NotImplementedError()


class TerminalPrompt(Prompt):
    def ask(self, question: str) -> str:
        try:
            return input(f"{question} {self.CHOICES} ")
        except EOFError:
            print()
            return ""


class ChrootState:
    """escalation state for one chroot's teardown"""

    def __init__(self, sig: signal.Signals):
        self.signal = sig
        self.attempts = 0

    def escalate(self) -> None:
        self.signal = signal.SIGKILL


def send_signal(pids: Iterable[int], sig: signal.Signals) -> None:
    for pid in pids:
        try:
            os.kill(pid, sig)
        except OSError as e:
            logger.debug(f"can't send {sig.name} to {pid}: {e}")


class Unmounter:
    def __init__(
            self, options: Options,
            prompt: Prompt | None = None,
            table: ProcessTable | None = None,
            list_mounts: Callable[[str], list[str]] = mounts.list_mounts,
            umount: Callable[[list[str]], bool] = mounts.umount,
            kill: Callable[[Iterable[int], signal.Signals], None] = send_signal,
            sleep: Callable[[float], None] = time.sleep):
        self.options = options
        self.prompt = prompt if prompt is not None else TerminalPrompt()
        self.table = table if table is not None else ProcessTable()
        self.list_mounts = list_mounts
        self.umount = umount
        self.kill = kill
        self.sleep = sleep

    def _print_processes(self, pids: set[int]) -> None:
        for pid in sorted(pids):
            print(f"{pid} {self.table.cmdline(pid)}")

    def _escalate(self, chroot: Chroot, state: ChrootState) -> None:
        """signal the occupants of chroot, asking first unless told yes"""
        if self.options.print_processes:
            self._print_processes(find_occupants(chroot.base, self.table))

        if not self.options.yes:
            response = self.prompt.ask(
                f"Failed to unmount {chroot.name}. Kill processes?")
            response = response.strip().lower()
            if response.startswith("a"):
                raise Aborted(f"not unmounting {chroot.name}")
            elif response.startswith("k"):
                state.escalate()
            elif not response.startswith("y"):
                print(f"Not signaling processes in {chroot.name}; "
                      "still trying to unmount...")
                return

        pids = find_occupants(chroot.base, self.table)
        print(f"Sending {state.signal.name} to {len(pids)} processes "
              f"in {chroot.name}...")
        self.kill(pids, state.signal)

        if self.options.yes:
            state.escalate()

    def umount_chroot(self, name: str) -> None:
        """unmount everything under chroot name, signaling as configured"""
        chroot = Chroot(name, self.options.chroots_path)

        if not self.options.force:
            if find_occupants(chroot.base, self.table):
                raise InUse(f"not unmounting {chroot.name}: "
                            "another instance is using it")

        state = ChrootState(
            signal.SIGKILL if self.options.kill else signal.SIGTERM)

        print(f"Unmounting {chroot.base}...")
        while True:
            paths = self.list_mounts(chroot.base)
            if not paths:
                break

            if self.umount(paths):
                continue

            state.attempts += 1
            logger.debug(f"{chroot.name}: {state.attempts=} {paths=}")
            if state.attempts >= self.options.tries:
                self._escalate(chroot, state)
                state.attempts = 0

            self.sleep(1)

        print(f"Unmounted {chroot.name}")

    def umount_chroots(self, names: Iterable[str]) -> int:
        """unmount every chroot in names -> exit status"""
        status = 0
        for name in names:
            try:
                self.umount_chroot(name)
            except (NotFound, InUse, Aborted) as e:
                common.error(e)
                status = 1

        return status
