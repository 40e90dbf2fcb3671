# Copyright (c) TurnKey GNU/Linux - https://www.turnkeylinux.org
#
# This file is part of Umount-chroots
#
# Umount-chroots is free software; you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License as published by the
# Free Software Foundation; either version 3 of the License, or (at your
# option) any later version.

import os
from logging import getLogger
from os.path import isdir, join, realpath

logger = getLogger("umount-chroots.chroots")

# encrypted chroots live one level down, under this reserved directory
SECURE_DIR = ".secure"


class Error(Exception):
    pass


class NotFound(Error):
    pass


class PrivilegeError(Error):
    pass


def require_root() -> None:
    if os.getuid() != 0:
        raise PrivilegeError("root privileges required to unmount chroots")


class Chroot:
    """a named chroot under a chroots directory

    The canonical base is resolved once, on construction: the plain
    location is preferred over the encrypted one.
    """

    def __init__(self, name: str, chroots_path: str):
        self.name = name
        self.chroots_path = chroots_path

        for path in (join(chroots_path, name),
                     join(chroots_path, SECURE_DIR, name)):
            if isdir(path):
                self.path = path
                break
        else:
            raise NotFound(f"{join(chroots_path, name)} not found")

        self.base = realpath(self.path)
        logger.debug(f"{name=} {self.base=}")

    def __repr__(self) -> str:
        return f"Chroot({self.name!r}, base={self.base!r})"


def all_chroots(chroots_path: str) -> list[str]:
    """return the names of every chroot in chroots_path"""
    names = set()
    for path in (chroots_path, join(chroots_path, SECURE_DIR)):
        if not isdir(path):
            continue

        for name in os.listdir(path):
            if name.startswith("."):
                continue
            if isdir(join(path, name)):
                names.add(name)

    return sorted(names)
