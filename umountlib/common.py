# Copyright (c) TurnKey GNU/Linux - https://www.turnkeylinux.org
#
# This file is part of Umount-chroots
#
# Umount-chroots is free software; you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License as published by the
# Free Software Foundation; either version 3 of the License, or (at your
# option) any later version.

import sys
from collections.abc import Callable
from typing import NoReturn


## cli common
def fatal(message: object) -> NoReturn:
    print(f"Fatal error: {message}", file=sys.stderr)
    sys.exit(1)


def error(message: object) -> None:
    print(f"Error: {message}", file=sys.stderr)


def usage(doc: str | None) -> Callable:
    """decorate a syntax printer into a usage(message=None) that exits 1"""

    def decor(print_syntax: Callable) -> Callable:
        def wrapper(message: object = None) -> NoReturn:
            if message:
                error(message)
            print_syntax()
            if doc:
                print(doc.strip(), file=sys.stderr)
            sys.exit(1)

        return wrapper

    return decor
