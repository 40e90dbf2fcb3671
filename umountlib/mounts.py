# Copyright (c) TurnKey GNU/Linux - https://www.turnkeylinux.org
#
# This file is part of Umount-chroots
#
# Umount-chroots is free software; you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License as published by the
# Free Software Foundation; either version 3 of the License, or (at your
# option) any later version.

import re
import subprocess
from logging import getLogger

logger = getLogger("umount-chroots.mounts")

MOUNTS_PATH = "/proc/mounts"


def _unescape(field: str) -> str:
    # /proc/mounts escapes space, tab, newline and backslash as \ooo
    return re.sub(r"\\([0-7]{3})", lambda m: chr(int(m.group(1), 8)), field)


def list_mounts(base: str, mounts_path: str = MOUNTS_PATH) -> list[str]:
    """return mount points at or under base, deepest first

    Mount points stacked on the same path are listed once per mount, most
    recent first, so a single umount batch peels all of them off.
    """
    mounts = []
    with open(mounts_path) as fob:
        for line in fob:
            fields = line.split()
            if len(fields) < 2:
                continue

            path = _unescape(fields[1])
            if path == base or path.startswith(base.rstrip("/") + "/"):
                mounts.append(path)

    mounts.reverse()
    mounts.sort(key=lambda path: path.rstrip("/").count("/"), reverse=True)
    logger.debug(f"{base=} {mounts=}")
    return mounts


def umount(paths: list[str]) -> bool:
    """unmount paths in one go -> True if umount reported success"""
    c = subprocess.run(["umount", *paths], capture_output=True, text=True)
    if c.returncode != 0:
        logger.debug(f"umount failed ({c.returncode}): {c.stderr.strip()}")
        return False

    return True
