import os
import signal
from collections.abc import Iterable
from os.path import realpath

import pytest

from umountlib.occupants import ProcessTable
from umountlib.unmount import Prompt


class FakeProcDir:
    """builds a proc-like directory tree that ProcessTable can read"""

    def __init__(self, path: str):
        self.path = path
        os.makedirs(path, exist_ok=True)

    def add(self, pid: int, root: str | None, ppid: int | None = None,
            environ: dict[str, str] | None = None, cmdline: str = "") -> None:
        piddir = os.path.join(self.path, str(pid))
        os.makedirs(piddir)
        if root is not None:
            os.symlink(root, os.path.join(piddir, "root"))
        if ppid is not None:
            with open(os.path.join(piddir, "status"), "w") as fob:
                fob.write(f"Name:\tproc{pid}\nState:\tS (sleeping)\n"
                          f"Tgid:\t{pid}\nPid:\t{pid}\nPPid:\t{ppid}\n")
        if environ is not None:
            with open(os.path.join(piddir, "environ"), "wb") as fob:
                for key, val in environ.items():
                    fob.write(f"{key}={val}\0".encode())
        with open(os.path.join(piddir, "cmdline"), "wb") as fob:
            fob.write("".join(f"{arg}\0" for arg in cmdline.split()).encode())


class FakeTable(ProcessTable):
    """in-memory process table"""

    def __init__(self) -> None:
        self.procs: dict[int, dict] = {}
        self.add(1, "/", 0, cmdline="/sbin/init")

    def add(self, pid: int, root: str, ppid: int,
            environ: dict[str, str] | None = None, cmdline: str = "") -> None:
        self.procs[pid] = {"root": root, "ppid": ppid,
                           "environ": environ or {}, "cmdline": cmdline}

    def remove(self, pid: int) -> None:
        self.procs.pop(pid, None)

    def pids(self):
        return iter(list(self.procs))

    def root(self, pid):
        proc = self.procs.get(pid)
        return proc["root"] if proc else None

    def ppid(self, pid):
        proc = self.procs.get(pid)
        return proc["ppid"] if proc else None

    def environ(self, pid):
        proc = self.procs.get(pid)
        return proc["environ"] if proc else None

    def cmdline(self, pid):
        proc = self.procs.get(pid)
        return proc["cmdline"] if proc else ""


class ScriptedPrompt(Prompt):
    """answers from a script, aborting once the script runs out"""

    def __init__(self, answers: Iterable[str] = ()):
        self.answers = list(answers)
        self.questions: list[str] = []

    def ask(self, question: str) -> str:
        self.questions.append(question)
        if self.answers:
            return self.answers.pop(0)
        return "a"


class FakeSystem:
    """mount table, umount, kill and sleep backed by a FakeTable

    umount fails while a live pid in busy has its root above one of the
    paths. A signal in lethal kills its targets, except for the first
    `resist` signals sent.
    """

    MAX_SLEEPS = 1000

    def __init__(self, table: FakeTable, mounts: dict[str, list[str]],
                 busy: Iterable[int] = (),
                 lethal: Iterable[signal.Signals] = (signal.SIGTERM,
                                                     signal.SIGKILL),
                 resist: int = 0):
        self.table = table
        self.mounts = mounts
        self.busy = set(busy)
        self.lethal = set(lethal)
        self.resist = resist
        self.attempts: list[list[str]] = []
        self.signals: list[tuple[list[int], signal.Signals]] = []
        self.sleeps = 0

    def list_mounts(self, base: str) -> list[str]:
        return list(self.mounts.get(base, []))

    def _blocked(self, paths: list[str]) -> bool:
        for pid in self.busy:
            root = self.table.root(pid)
            if root is None:
                continue
            if any(path == root or path.startswith(root + "/")
                   for path in paths):
                return True
        return False

    def umount(self, paths: list[str]) -> bool:
        self.attempts.append(paths)
        if self._blocked(paths):
            return False

        for base in self.mounts:
            self.mounts[base] = [p for p in self.mounts[base] if p not in paths]
        return True

    def kill(self, pids: Iterable[int], sig: signal.Signals) -> None:
        pids = sorted(pids)
        self.signals.append((pids, sig))
        if len(self.signals) <= self.resist:
            return

        if sig in self.lethal:
            for pid in pids:
                self.table.remove(pid)

    def sleep(self, seconds: float) -> None:
        self.sleeps += 1
        if self.sleeps > self.MAX_SLEEPS:
            raise RuntimeError("retry loop did not terminate")


@pytest.fixture
def proc_dir(tmp_path):
    fake = FakeProcDir(str(tmp_path / "proc"))
    fake.add(1, "/", 0, cmdline="/sbin/init")
    return fake


@pytest.fixture
def chroots_path(tmp_path):
    path = tmp_path / "chroots"
    path.mkdir()
    return realpath(str(path))


@pytest.fixture
def make_chroot(chroots_path):
    def make(name: str, secure: bool = False) -> str:
        parent = os.path.join(chroots_path, ".secure") if secure else chroots_path
        path = os.path.join(parent, name)
        os.makedirs(path)
        return realpath(path)

    return make
