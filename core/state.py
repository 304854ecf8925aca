"""
Session state for one terminal.

``Session`` is a frozen, versioned aggregate: environment, working
directory, command history, history cursor, installed packages and the
filesystem snapshot. Every change produces a new ``Session`` with its
version bumped, so a command handler can only publish state by returning
it.

The transcript (what the user sees) is kept apart because it is
append-only and read by the host surfaces, not by command handlers.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Mapping, Optional

from config.settings import DEFAULT_ENV, DEFAULT_PACKAGES
from core.paths import HOME
from core.virtual_fs import VirtualFS, build_vfs


class LineKind(str, Enum):
    INPUT  = "input"
    OUTPUT = "output"


@dataclass(frozen=True)
class OutputLine:
    kind: LineKind
    text: str

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "text": self.text}


@dataclass(frozen=True)
class Session:
    fs: VirtualFS = field(default_factory=build_vfs)
    cwd: str = HOME
    env: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_ENV))
    history: tuple[str, ...] = ()
    history_index: Optional[int] = None
    packages: frozenset[str] = frozenset(DEFAULT_PACKAGES)
    version: int = 0

    def evolve(self, **changes) -> "Session":
        return replace(self, version=self.version + 1, **changes)

    # ── Filesystem ────────────────────────────────────────────────────────────
    def with_fs(self, fs: VirtualFS) -> "Session":
        return self.evolve(fs=fs)

    def write(self, path: str, node) -> "Session":
        return self.with_fs(self.fs.set(path, node))

    # ── Environment ───────────────────────────────────────────────────────────
    def with_env(self, name: str, value: str) -> "Session":
        env = dict(self.env)
        env[name] = value
        return self.evolve(env=env)

    # ── Packages ──────────────────────────────────────────────────────────────
    def has_package(self, manager: str, name: str) -> bool:
        return f"{manager}:{name}" in self.packages

    def packages_for(self, manager: str) -> list[str]:
        prefix = manager + ":"
        return sorted(p[len(prefix):] for p in self.packages if p.startswith(prefix))

    def install(self, manager: str, name: str) -> "Session":
        return self.evolve(packages=self.packages | {f"{manager}:{name}"})

    def uninstall(self, manager: str, name: str) -> "Session":
        return self.evolve(packages=self.packages - {f"{manager}:{name}"})

    # ── History ───────────────────────────────────────────────────────────────
    def record(self, line: str) -> "Session":
        """Append a submitted line and reset the navigation cursor."""
        return self.evolve(history=self.history + (line,), history_index=None)


def history_up(session: Session) -> tuple[Session, Optional[str]]:
    """
    Move the cursor one entry older.

    Returns the new session and the text for the input buffer, or None when
    there is no history to show.
    """
    if not session.history:
        return session, None
    if session.history_index is None:
        index = len(session.history) - 1
    else:
        index = max(0, session.history_index - 1)
    return session.evolve(history_index=index), session.history[index]


def history_down(session: Session) -> tuple[Session, Optional[str]]:
    """Move the cursor one entry newer; past the newest clears the input."""
    if session.history_index is None:
        return session, None
    index = session.history_index + 1
    if index >= len(session.history):
        return session.evolve(history_index=None), ""
    return session.evolve(history_index=index), session.history[index]


def complete(prefix: str, names: Iterable[str]) -> list[str]:
    """Registered command names starting with the first word of ``prefix``."""
    word = prefix.split(" ")[0]
    return [n for n in names if n.startswith(word)]


class Transcript:
    """
    Append-only list of output lines with an explicit ``clear``.

    ``epoch`` increases on every clear so a reader that remembers
    ``(epoch, count)`` can tell new lines from a reset screen.
    """

    def __init__(self, lines: Iterable[str] = ()):
        self._lines: list[OutputLine] = [OutputLine(LineKind.OUTPUT, l) for l in lines]
        self.epoch = 0

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(self._lines)

    def __getitem__(self, item):
        return self._lines[item]

    def add_input(self, text: str) -> None:
        self._lines.append(OutputLine(LineKind.INPUT, text))

    def add_output(self, lines: Iterable[str]) -> None:
        self._lines.extend(OutputLine(LineKind.OUTPUT, l) for l in lines)

    def clear(self) -> None:
        self._lines = []
        self.epoch += 1

    def since(self, epoch: int, count: int) -> tuple[bool, list[OutputLine]]:
        """Lines a reader at ``(epoch, count)`` has not seen, and whether it must reset."""
        if epoch != self.epoch:
            return True, list(self._lines)
        return False, self._lines[count:]

    def texts(self) -> list[str]:
        return [l.text for l in self._lines]
