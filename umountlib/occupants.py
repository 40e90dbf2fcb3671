# Copyright (c) TurnKey GNU/Linux - https://www.turnkeylinux.org
#
# This file is part of Umount-chroots
#
# Umount-chroots is free software; you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License as published by the
# Free Software Foundation; either version 3 of the License, or (at your
# option) any later version.

"""Find the processes that keep a chroot busy

A process occupies a chroot when its root directory is the chroot's base,
unless it is an orphan (reparented to init), a child of another occupant
or carries the core marker in its environment.
"""

import os
from collections.abc import Iterator
from logging import getLogger
from os.path import dirname, join, realpath

logger = getLogger("umount-chroots.occupants")

PROC_PATH = "/proc"

CORE_MARKER = ("CHROOT", "CORE")


class ProcessTable:
    """read-only view of the live process table

    Every lookup reads the proc filesystem again, and returns None if the
    entry is gone or unreadable (processes come and go during a scan).
    """

    def __init__(self, proc_path: str = PROC_PATH):
        self.proc_path = proc_path

    def _read(self, pid: int, name: str) -> bytes | None:
        try:
            with open(join(self.proc_path, str(pid), name), "rb") as fob:
                return fob.read()
        except OSError as e:
            logger.debug(f"can't read {name} of {pid}: {e}")
            return None

    def pids(self) -> Iterator[int]:
        for entry in os.listdir(self.proc_path):
            if entry.isdigit():
                yield int(entry)

    def root(self, pid: int) -> str | None:
        link = join(self.proc_path, str(pid), "root")
        try:
            target = os.readlink(link)
        except OSError as e:
            logger.debug(f"can't resolve root of {pid}: {e}")
            return None

        return realpath(join(dirname(link), target))

    def ppid(self, pid: int) -> int | None:
        status = self._read(pid, "status")
        if status is None:
            return None

        for line in status.decode(errors="replace").splitlines():
            if line.startswith("PPid:"):
                try:
                    return int(line.split(":", 1)[1])
                except ValueError:
                    return None

        return None

    def environ(self, pid: int) -> dict[str, str] | None:
        data = self._read(pid, "environ")
        if data is None:
            return None

        env = {}
        for entry in data.decode(errors="surrogateescape").split("\0"):
            if "=" in entry:
                key, val = entry.split("=", 1)
                env[key] = val

        return env

    def cmdline(self, pid: int) -> str:
        data = self._read(pid, "cmdline")
        if not data:
            return ""

        return " ".join(data.decode(errors="replace").rstrip("\0").split("\0"))


def is_core(env: dict[str, str] | None) -> bool:
    key, val = CORE_MARKER
    return env is not None and env.get(key) == val


def is_occupant(table: ProcessTable, pid: int, base: str) -> bool:
    if table.root(pid) != base:
        return False

    ppid = table.ppid(pid)
    if ppid is None or ppid == 1:
        return False

    # only the topmost process of a tree inside the chroot counts
    if table.root(ppid) == base:
        return False

    if is_core(table.environ(pid)):
        return False

    return True


def find_occupants(base: str, table: ProcessTable | None = None) -> set[int]:
    """return pids of the processes occupying chroot base"""
    if table is None:
        table = ProcessTable()

    occupants = {pid for pid in table.pids() if is_occupant(table, pid, base)}
    logger.debug(f"{base=} {occupants=}")
    return occupants
