"""
Command Engine – the dispatcher behind every terminal surface.

Key features
------------
* One ``Terminal`` per session: session snapshot, transcript, input buffer, tasks
* Line parsing: command, space-split args, single ``>`` redirection
* Total dispatch table over the closed ``Command`` enumeration
* Deferred tasks ticked by the host's clock; effects applied to the live snapshot
* History navigation and tab completion on the input buffer
* JSON audit logging of every submitted line
"""
from __future__ import annotations

import datetime
import json
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from config.settings import BANNER, RANDOM_SEED
from core import commands, simulations
from core.commands import Command, Context, Handler, Result
from core.errors import NotADirectory, ShellError, UnknownCommand
from core.paths import HOME, resolve
from core.state import Session, Transcript, complete, history_down, history_up
from core.tasks import TaskScheduler
from core.virtual_fs import File

_cmd_log = logging.getLogger("commands")
_sys_log = logging.getLogger("system")

REDIRECT = " > "
PROMPT   = "$"


# ── Dispatch table ────────────────────────────────────────────────────────────

HANDLERS: dict[Command, Handler] = {
    Command.HELP:    commands.cmd_help,
    Command.CLEAR:   commands.cmd_clear,
    Command.ECHO:    commands.cmd_echo,
    Command.DATE:    commands.cmd_date,
    Command.PWD:     commands.cmd_pwd,
    Command.WHOAMI:  commands.cmd_whoami,
    Command.UNAME:   commands.cmd_uname,
    Command.ENV:     commands.cmd_env,
    Command.EXPORT:  commands.cmd_export,
    Command.LS:      commands.cmd_ls,
    Command.CD:      commands.cmd_cd,
    Command.CAT:     commands.cmd_cat,
    Command.MKDIR:   commands.cmd_mkdir,
    Command.TOUCH:   commands.cmd_touch,
    Command.RM:      commands.cmd_rm,
    Command.CP:      commands.cmd_cp,
    Command.MV:      commands.cmd_mv,
    Command.CHMOD:   commands.cmd_chmod,
    Command.WGET:    simulations.cmd_wget,
    Command.CURL:    simulations.cmd_curl,
    Command.PING:    simulations.cmd_ping,
    Command.WINGET:  simulations.cmd_winget,
    Command.APT:     simulations.cmd_apt,
    Command.NPM:     simulations.cmd_npm,
    Command.PIP:     simulations.cmd_pip,
    Command.PS:      commands.static(Command.PS),
    Command.TOP:     commands.static(Command.TOP),
    Command.DF:      commands.static(Command.DF),
    Command.FREE:    commands.static(Command.FREE),
    Command.GREP:    commands.cmd_grep,
    Command.FIND:    commands.cmd_find,
    Command.HEAD:    commands.cmd_head,
    Command.TAIL:    commands.cmd_tail,
    Command.WC:      commands.cmd_wc,
    Command.NANO:    commands.cmd_nano,
    Command.HISTORY: commands.cmd_history,
    Command.CALC:    commands.cmd_calc,
    Command.WEATHER: commands.static(Command.WEATHER),
}

_unhandled = [c.value for c in Command if c not in HANDLERS]
if _unhandled:
    raise RuntimeError(f"commands without a handler: {', '.join(_unhandled)}")

COMMAND_NAMES = [c.value for c in Command]


# ── Line parsing ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ParsedLine:
    command: str
    args: list[str] = field(default_factory=list)
    redirect: Optional[str] = None


def parse_line(line: str) -> ParsedLine:
    """
    Split a trimmed input line.

    Only the first `` > `` is a redirection; everything after it is the
    target, verbatim. Arguments are split on single spaces with no quoting.
    """
    redirect = None
    idx = line.find(REDIRECT)
    if idx != -1:
        redirect = line[idx + len(REDIRECT):].strip()
        line = line[:idx].strip()
    parts = line.split(" ")
    return ParsedLine(parts[0], parts[1:], redirect or None)


# ── Terminal ──────────────────────────────────────────────────────────────────

class Terminal:
    """
    One emulated shell session.

    Host surfaces call ``submit``, ``history_up``, ``history_down``,
    ``complete``, ``tick`` and ``interrupt``; they read ``transcript``,
    ``input`` and ``prompt``.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        wallclock: Optional[Callable[[], datetime.datetime]] = None,
        banner: list[str] = BANNER,
    ):
        self.session    = session if session is not None else Session()
        self.transcript = Transcript(banner)
        self.input      = ""
        self.scheduler  = TaskScheduler()
        self.rng        = rng if rng is not None else random.Random(RANDOM_SEED)
        self._clock     = clock
        self._wallclock = wallclock or (lambda: datetime.datetime.now(datetime.timezone.utc))

    @property
    def cwd(self) -> str:
        return self.session.cwd

    @property
    def prompt(self) -> str:
        return f"{self.session.cwd} {PROMPT} "

    @property
    def busy(self) -> bool:
        return len(self.scheduler) > 0

    # ── Submission ────────────────────────────────────────────────────────────

    def submit(self, line: Optional[str] = None) -> Optional[Result]:
        """Run ``line`` (or the input buffer) and route its result."""
        raw = self.input if line is None else line
        self.input = ""
        trimmed = raw.strip()
        if not trimmed:
            return None

        cwd = self.session.cwd
        self.transcript.add_input(f"{cwd} {PROMPT} {trimmed}")
        self.session = self.session.record(trimmed)
        _cmd_log.info(json.dumps({
            "timestamp":  self._wallclock().isoformat(timespec="seconds"),
            "event_type": "command",
            "cwd":        cwd,
            "command":    trimmed,
        }))

        parsed = parse_line(trimmed)
        result = self.dispatch(parsed)
        self._route(result, parsed, cwd)
        return result

    def dispatch(self, parsed: ParsedLine) -> Result:
        command = Command.lookup(parsed.command)
        if command is None:
            return Result(UnknownCommand(parsed.command).lines())
        ctx = Context(self.session, self.rng, self._wallclock)
        try:
            return HANDLERS[command](ctx, parsed.args)
        except ShellError as exc:
            return Result(exc.lines())
        except Exception:
            _sys_log.exception(json.dumps({
                "event": "handler_error", "command": command.value, "args": parsed.args,
            }))
            return Result([f"{command.value}: internal error"])

    def _route(self, result: Result, parsed: ParsedLine, cwd: str) -> None:
        if result.session is not None:
            self.session = result.session
        if result.clear:
            self.transcript.clear()

        if result.task is not None:
            task = self.scheduler.start(result.task, self._clock())
            self.transcript.add_output(task.preamble)
            return
        if not result.lines:
            return

        if parsed.redirect is None:
            self.transcript.add_output(result.lines)
            return
        path = resolve(parsed.redirect, cwd)
        if path == HOME:
            self.transcript.add_output([f"{parsed.redirect}: Is a directory"])
            return
        try:
            self.session = self.session.write(path, File("\n".join(result.lines)))
        except NotADirectory:
            self.transcript.add_output([f"{parsed.redirect}: Not a directory"])

    # ── Deferred tasks ────────────────────────────────────────────────────────

    def tick(self, now: Optional[float] = None) -> int:
        """Advance due tasks; returns the number of lines appended."""
        now = self._clock() if now is None else now
        appended = 0
        for outcome in self.scheduler.tick(now):
            self.transcript.add_output(outcome.lines)
            appended += len(outcome.lines)
            if outcome.completed and outcome.task.effect is not None:
                try:
                    self.session = outcome.task.effect(self.session)
                except ShellError as exc:
                    self.transcript.add_output(exc.lines())
                    appended += len(exc.lines())
        return appended

    def run_pending(self) -> None:
        """Drive every running task to completion on a simulated clock."""
        while self.busy:
            self.tick(self.scheduler.next_due())

    def interrupt(self) -> int:
        """Ctrl-C: drop the input buffer and cancel every running task."""
        self.input = ""
        cancelled = self.scheduler.cancel_all()
        if cancelled:
            self.transcript.add_output(["^C"])
        return cancelled

    # ── Keyboard contract ─────────────────────────────────────────────────────

    def history_up(self) -> str:
        self.session, text = history_up(self.session)
        if text is not None:
            self.input = text
        return self.input

    def history_down(self) -> str:
        self.session, text = history_down(self.session)
        if text is not None:
            self.input = text
        return self.input

    def complete(self) -> list[str]:
        matches = complete(self.input, COMMAND_NAMES)
        if len(matches) == 1:
            self.input = matches[0]
        elif matches:
            self.transcript.add_output(["   ".join(matches)])
        return matches
