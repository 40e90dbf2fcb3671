# Copyright (c) TurnKey GNU/Linux - https://www.turnkeylinux.org
#
# This file is part of Umount-chroots
#
# Umount-chroots is free software; you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License as published by the
# Free Software Foundation; either version 3 of the License, or (at your
# option) any later version.

"""Unmount one or more chroots, signaling any processes still inside them

Arguments:
  <name>                  Name of a chroot in the chroots directory

Options:
  -a --all                Unmount every chroot in the chroots directory
  -c --chroots=PATH       Directory the chroots are in
                          default: $UMOUNT_CHROOTS_PATH or /var/lib/chroots
  -f --force              Unmount even if another instance is using the chroot
  -k --kill               Send SIGKILL instead of SIGTERM
  -p --print              Print the processes keeping a chroot busy
  -t --tries=TRIES        Failed attempts (one per second) before signaling
                          processes. "inf" waits forever.
                          default: $UMOUNT_CHROOTS_TRIES or 5
  -y --yes                Signal processes without asking, escalating from
                          SIGTERM to SIGKILL

Environment:
  UMOUNT_CHROOTS_DEBUG    Log debugging information to stderr

"""

import getopt
import logging
import os
import sys
from typing import NoReturn

from . import common
from .chroots import PrivilegeError, all_chroots, require_root
from .unmount import UNLIMITED, Options, Unmounter

DEFAULT_CHROOTS_PATH = "/var/lib/chroots"
DEFAULT_TRIES = "5"


@common.usage(__doc__)
def usage() -> None:
    print(f"Syntax: {sys.argv[0]} [-options] <name> [...]", file=sys.stderr)
    print(f"Syntax: {sys.argv[0]} [-options] --all", file=sys.stderr)


def parse_tries(val: str) -> float:
    if val == "inf":
        return UNLIMITED

    tries = int(val)
    if tries < 0:
        raise ValueError(f"negative tries ({val})")

    return tries


def main(argv: list[str] | None = None) -> NoReturn:
    if argv is None:
        argv = sys.argv[1:]

    if os.environ.get("UMOUNT_CHROOTS_DEBUG"):
        logging.basicConfig(level=logging.DEBUG)

    try:
        opts, args = getopt.gnu_getopt(argv, "ac:fkpt:y",
                                       ["all", "chroots=", "force", "kill",
                                        "print", "tries=", "yes"])
    except getopt.GetoptError as e:
        usage(e)

    chroots_path = os.environ.get("UMOUNT_CHROOTS_PATH", DEFAULT_CHROOTS_PATH)
    tries = os.environ.get("UMOUNT_CHROOTS_TRIES", DEFAULT_TRIES)
    opt_all = False
    opt_force = False
    opt_kill = False
    opt_print = False
    opt_yes = False
    for opt, val in opts:
        if opt in ("-a", "--all"):
            opt_all = True
        elif opt in ("-c", "--chroots"):
            chroots_path = val
        elif opt in ("-f", "--force"):
            opt_force = True
        elif opt in ("-k", "--kill"):
            opt_kill = True
        elif opt in ("-p", "--print"):
            opt_print = True
        elif opt in ("-t", "--tries"):
            tries = val
        elif opt in ("-y", "--yes"):
            opt_yes = True

    try:
        max_tries = parse_tries(tries)
    except ValueError:
        usage(f"invalid tries ({tries})")

    if opt_all:
        args = list(dict.fromkeys(all_chroots(chroots_path) + args))
    elif not args:
        usage()

    try:
        require_root()
    except PrivilegeError as e:
        common.fatal(e)

    options = Options(chroots_path, tries=max_tries, kill=opt_kill,
                      yes=opt_yes, force=opt_force,
                      print_processes=opt_print)
    sys.exit(Unmounter(options).umount_chroots(args))


if __name__ == "__main__":
    main()
