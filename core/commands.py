"""
Command registry – filesystem, text and system commands.

Key features
------------
* Closed ``Command`` enumeration; the dispatcher maps every member to a handler
* Handlers are functions of (Context, args) returning a ``Result``
* Session changes are published only through ``Result.session``
* Errors are raised as ``ShellError`` and shown as ordinary output lines

Network and package-manager commands live in ``core.simulations``.
"""
from __future__ import annotations

import datetime
import fnmatch
import random
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional

from config.settings import TERMINAL_NAME, TERMINAL_VERSION
from core.calc import evaluate, format_number
from core.errors import (
    InvalidOperand, InvalidSyntax, IsADirectory, MissingOperand,
    NotADirectory, NotFound, ShellError,
)
from core.paths import HOME, basename, is_within, resolve
from core.state import Session
from core.tasks import DeferredTask
from core.virtual_fs import Directory, File, VirtualFS


class Command(str, Enum):
    HELP    = "help"
    CLEAR   = "clear"
    ECHO    = "echo"
    DATE    = "date"
    PWD     = "pwd"
    WHOAMI  = "whoami"
    UNAME   = "uname"
    ENV     = "env"
    EXPORT  = "export"
    LS      = "ls"
    CD      = "cd"
    CAT     = "cat"
    MKDIR   = "mkdir"
    TOUCH   = "touch"
    RM      = "rm"
    CP      = "cp"
    MV      = "mv"
    CHMOD   = "chmod"
    WGET    = "wget"
    CURL    = "curl"
    PING    = "ping"
    WINGET  = "winget"
    APT     = "apt"
    NPM     = "npm"
    PIP     = "pip"
    PS      = "ps"
    TOP     = "top"
    DF      = "df"
    FREE    = "free"
    GREP    = "grep"
    FIND    = "find"
    HEAD    = "head"
    TAIL    = "tail"
    WC      = "wc"
    NANO    = "nano"
    HISTORY = "history"
    CALC    = "calc"
    WEATHER = "weather"

    @classmethod
    def lookup(cls, name: str) -> Optional["Command"]:
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass(frozen=True)
class Context:
    """What a handler may read: one session snapshot plus sources of randomness and time."""
    session: Session
    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], datetime.datetime] = lambda: datetime.datetime.now(datetime.timezone.utc)

    @property
    def fs(self) -> VirtualFS:
        return self.session.fs

    def resolve(self, path: str) -> str:
        return resolve(path, self.session.cwd)


@dataclass
class Result:
    lines: list[str] = field(default_factory=list)
    session: Optional[Session] = None
    task: Optional[DeferredTask] = None
    clear: bool = False


Handler = Callable[[Context, list], Result]


def output(*lines: str) -> Result:
    return Result(list(lines))


# ── Argument helpers ──────────────────────────────────────────────────────────

def operands(args: list[str]) -> list[str]:
    return [a for a in args if a and not a.startswith("-")]


def flags(args: list[str]) -> set[str]:
    """Single-letter flags, so ``-la`` and ``-al`` both give {'l', 'a'}."""
    return {ch for a in args if a.startswith("-") for ch in a[1:]}


def _write(session: Session, path: str, node, message: str) -> Session:
    try:
        return session.write(path, node)
    except NotADirectory:
        raise NotADirectory(message) from None


def _read_file(ctx: Context, cmd: str, arg: str) -> File:
    node = ctx.fs.get(ctx.resolve(arg))
    if node is None:
        raise NotFound(cmd, arg)
    if node.is_dir:
        raise IsADirectory(f"{cmd}: {arg}: Is a directory")
    return node


# ── Basic ─────────────────────────────────────────────────────────────────────

HELP_TEXT = [
    "Available commands:",
    "  Basic: help, clear, echo, date, whoami, uname, env, export",
    "  Files: ls, cd, pwd, cat, touch, mkdir, rm, cp, mv, chmod",
    "  Network: wget, curl, ping",
    "  Packages: apt, npm, pip, winget",
    "  System: ps, top, df, free",
    "  Text: grep, find, head, tail, wc, nano",
    "  Other: calc, weather, history",
    "",
    "Use <command> --help for detailed usage",
]


def cmd_help(ctx: Context, args):
    return output(*HELP_TEXT)


def cmd_clear(ctx: Context, args):
    return Result(clear=True)


_VAR = re.compile(r"\$(\w+)")


def cmd_echo(ctx: Context, args):
    text = " ".join(args)
    return output(_VAR.sub(lambda m: ctx.session.env.get(m.group(1), ""), text))


def cmd_date(ctx: Context, args):
    return output(ctx.clock().strftime("%a %b %d %H:%M:%S UTC %Y"))


def cmd_pwd(ctx: Context, args):
    return output(ctx.session.cwd)


def cmd_whoami(ctx: Context, args):
    return output(ctx.session.env.get("USER", ""))


def cmd_uname(ctx: Context, args):
    if "-a" in args:
        return output(f"{TERMINAL_NAME} {TERMINAL_VERSION} Web x86_64 GNU/Linux")
    return output(TERMINAL_NAME)


def cmd_env(ctx: Context, args):
    return output(*(f"{k}={v}" for k, v in ctx.session.env.items()))


_ASSIGNMENT = re.compile(r"(\w+)=(.*)")


def cmd_export(ctx: Context, args):
    if not args:
        return cmd_env(ctx, args)
    m = _ASSIGNMENT.fullmatch(args[0])
    if not m:
        raise InvalidSyntax("export: invalid syntax")
    return Result(session=ctx.session.with_env(m.group(1), m.group(2)))


# ── Files ─────────────────────────────────────────────────────────────────────

def cmd_ls(ctx: Context, args):
    opts     = flags(args)
    show_all = "a" in opts
    long_fmt = "l" in opts
    target   = next(iter(operands(args)), None)
    path     = ctx.resolve(target) if target is not None else ctx.session.cwd

    node = ctx.fs.get(path)
    if node is None:
        raise NotFound("ls", target or path, "ls: cannot access '{path}': No such file or directory")
    if not node.is_dir:
        return output(target)

    names = sorted(n for n in node.contents if show_all or not n.startswith("."))
    if not long_fmt:
        return output(*names)

    user = ctx.session.env.get("USER", "guest")
    lines = []
    for name in names:
        child = node.contents[name]
        size  = 4096 if child.is_dir else len(child.content)
        lines.append(f"{child.permissions} 1 {user} {user} {size:>8} Dec 14 12:00 {name}")
    return Result(lines)


def cmd_cd(ctx: Context, args):
    if not args or args[0] == HOME:
        return Result(session=ctx.session.evolve(cwd=HOME))
    path = ctx.resolve(args[0])
    node = ctx.fs.get(path)
    if node is None:
        raise NotFound("cd", args[0])
    if not node.is_dir:
        raise NotADirectory(f"cd: {args[0]}: Not a directory")
    return Result(session=ctx.session.evolve(cwd=path))


def cmd_cat(ctx: Context, args):
    if not args:
        raise MissingOperand("cat: missing file operand")
    lines = []
    for a in args:
        try:
            lines.extend(_read_file(ctx, "cat", a).content.split("\n"))
        except ShellError as exc:
            lines.extend(exc.lines())
    return Result(lines)


def cmd_mkdir(ctx: Context, args):
    targets = operands(args)
    if not targets:
        raise MissingOperand("mkdir: missing operand")
    session, errors = ctx.session, []
    for a in targets:
        try:
            session = _write(session, ctx.resolve(a), Directory(),
                             f"mkdir: cannot create directory '{a}': Not a directory")
        except ShellError as exc:
            errors.extend(exc.lines())
    return Result(errors, session)


def cmd_touch(ctx: Context, args):
    targets = operands(args)
    if not targets:
        raise MissingOperand("touch: missing file operand")
    session, errors = ctx.session, []
    for a in targets:
        path = ctx.resolve(a)
        if session.fs.exists(path):
            continue
        try:
            session = _write(session, path, File(), f"touch: cannot touch '{a}': Not a directory")
        except ShellError as exc:
            errors.extend(exc.lines())
    return Result(errors, session)


def cmd_rm(ctx: Context, args):
    opts      = flags(args)
    recursive = "r" in opts or "R" in opts
    force     = "f" in opts
    targets   = operands(args)
    if not targets:
        raise MissingOperand("rm: missing operand")

    session, errors = ctx.session, []
    for a in targets:
        path = ctx.resolve(a)
        node = session.fs.get(path)
        if path == HOME:
            errors.append(f"rm: refusing to remove '{a}'")
        elif node is None:
            if not force:
                errors.append(f"rm: cannot remove '{a}': No such file or directory")
        elif node.is_dir and not recursive:
            errors.append(f"rm: cannot remove '{a}': Is a directory")
        else:
            session = session.write(path, None)
    return Result(errors, session)


def _transfer(ctx: Context, args, cmd: str, move: bool) -> Result:
    targets = operands(args)
    if len(targets) < 2:
        raise MissingOperand(f"{cmd}: missing file operand")
    src_arg, dst_arg = targets[0], targets[1]
    src  = ctx.resolve(src_arg)
    dst  = ctx.resolve(dst_arg)
    node = ctx.fs.get(src)
    if node is None:
        raise NotFound(cmd, src_arg, "{cmd}: cannot stat '{path}': No such file or directory")
    if src == HOME:
        raise InvalidOperand(f"{cmd}: cannot {'move' if move else 'copy'} '{src_arg}'")
    if dst == HOME:
        raise InvalidOperand(f"{cmd}: cannot overwrite '{dst_arg}'")
    if dst == src:
        raise InvalidOperand(f"{cmd}: '{src_arg}' and '{dst_arg}' are the same file")
    if node.is_dir and is_within(dst, src):
        raise InvalidOperand(
            f"{cmd}: cannot {'move' if move else 'copy'} '{src_arg}' "
            f"to a subdirectory of itself, '{dst_arg}'"
        )

    # Nodes are immutable, so sharing the subtree is a deep copy.
    session = _write(ctx.session, dst, node, f"{cmd}: cannot create '{dst_arg}': Not a directory")
    # Overwriting an ancestor of src already dropped src.
    if move and not is_within(src, dst):
        session = session.write(src, None)
    return Result(session=session)


def cmd_cp(ctx: Context, args):
    return _transfer(ctx, args, "cp", move=False)


def cmd_mv(ctx: Context, args):
    return _transfer(ctx, args, "mv", move=True)


_OCTAL = re.compile(r"[0-7]{3}")


def _symbolic(mode: str, is_dir: bool) -> str:
    """``755`` → ``drwxr-xr-x``; anything else is kept as typed."""
    if not _OCTAL.fullmatch(mode):
        return mode
    bits = "".join(
        ("r" if int(d) & 4 else "-") + ("w" if int(d) & 2 else "-") + ("x" if int(d) & 1 else "-")
        for d in mode
    )
    return ("d" if is_dir else "-") + bits


def cmd_chmod(ctx: Context, args):
    if len(args) < 2:
        raise MissingOperand("chmod: missing operand")
    mode, target = args[0], args[1]
    path = ctx.resolve(target)
    node = ctx.fs.get(path)
    if node is None:
        raise NotFound("chmod", target, "chmod: cannot access '{path}': No such file or directory")
    updated = replace(node, permissions=_symbolic(mode, node.is_dir))
    return Result(session=ctx.session.write(path, updated))


# ── System ────────────────────────────────────────────────────────────────────

STATIC_RESPONSES = {
    Command.PS: [
        "PID TTY          TIME CMD",
        "  1 pts/0    00:00:00 bash",
        "  2 pts/0    00:00:01 web-terminal",
        " 42 pts/0    00:00:00 ps",
    ],
    Command.TOP: [
        "top - 12:34:56 up 1 day, 2:30, 1 user",
        "Tasks: 3 total, 1 running, 2 sleeping",
        "CPU: 5.2% user, 2.1% system",
        "Memory: 512M total, 256M used, 256M free",
        "",
        "PID USER      CPU% MEM%   TIME COMMAND",
        "  1 guest      0.0  0.1   0:00 bash",
        "  2 guest      2.1  1.5   0:01 web-terminal",
    ],
    Command.DF: [
        "Filesystem     1K-blocks    Used Available Use% Mounted on",
        "/dev/sda1       10485760 5242880   5242880  50% /",
        "tmpfs             524288   52428    471860  10% /tmp",
    ],
    Command.FREE: [
        "              total        used        free      shared",
        "Mem:         524288      262144      262144        1024",
        "Swap:        524288           0      524288",
    ],
    Command.WEATHER: [
        "🌤️  Weather in Tokyo:",
        "   Temperature: 12°C",
        "   Conditions: Partly Cloudy",
        "   Humidity: 65%",
        "   Wind: 10 km/h NE",
    ],
}


def static(command: Command) -> Handler:
    def handler(ctx: Context, args):
        return output(*STATIC_RESPONSES[command])
    handler.__name__ = f"cmd_{command.value}"
    return handler


def cmd_history(ctx: Context, args):
    # The last entry is this `history` line itself.
    return output(*(f"  {i + 1}  {line}" for i, line in enumerate(ctx.session.history[:-1])))


def cmd_calc(ctx: Context, args):
    if not args:
        raise MissingOperand("calc: missing expression")
    return output(format_number(evaluate(" ".join(args))))


def cmd_nano(ctx: Context, args):
    if not args:
        raise MissingOperand("nano: missing file name")
    return output(
        "GNU nano 4.8 - Editing is not available in web terminal. "
        f"Use 'echo \"content\" > {args[0]}' instead."
    )


# ── Text ──────────────────────────────────────────────────────────────────────

def cmd_grep(ctx: Context, args):
    ignore_case = "i" in flags(args)
    targets = operands(args)
    if len(targets) < 2:
        raise MissingOperand("grep: missing pattern or file")
    pattern, file_arg = targets[0], targets[1]
    content = _read_file(ctx, "grep", file_arg).content
    if ignore_case:
        needle = pattern.lower()
        return Result([l for l in content.split("\n") if needle in l.lower()])
    return Result([l for l in content.split("\n") if pattern in l])


def cmd_find(ctx: Context, args):
    start = "."
    if args and not args[0].startswith("-"):
        start = args[0]
    name_filter = type_filter = None
    if "-name" in args:
        idx = args.index("-name")
        if idx + 1 >= len(args):
            raise MissingOperand("find: missing argument to `-name'")
        name_filter = args[idx + 1].strip("\"'")
    if "-type" in args:
        idx = args.index("-type")
        if idx + 1 >= len(args) or args[idx + 1] not in ("f", "d"):
            raise InvalidOperand("find: Unknown argument to -type")
        type_filter = args[idx + 1]

    root = ctx.resolve(start)
    if not ctx.fs.exists(root):
        raise NotFound("find", start, "find: '{path}': No such file or directory")

    prefix = start.rstrip("/") or start
    lines = []
    for path, node in ctx.fs.walk(root):
        if type_filter == "f" and node.is_dir or type_filter == "d" and not node.is_dir:
            continue
        if name_filter and not fnmatch.fnmatchcase(basename(path), name_filter):
            continue
        lines.append(prefix + path[len(root):])
    return Result(lines)


def _line_count(cmd: str, args: list[str]) -> tuple[int, Optional[str]]:
    n, file_arg = 10, None
    i = 0
    while i < len(args):
        a = args[i]
        value = None
        if a == "-n":
            if i + 1 >= len(args):
                raise MissingOperand(f"{cmd}: option requires an argument -- 'n'")
            value = args[i + 1]
            i += 1
        elif a.startswith("-n"):
            value = a[2:]
        elif re.fullmatch(r"-\d+", a):
            value = a[1:]
        elif file_arg is None:
            file_arg = a
        if value is not None:
            if not value.isdigit():
                raise InvalidOperand(f"{cmd}: invalid number of lines: '{value}'")
            n = int(value)
        i += 1
    return n, file_arg


def cmd_head(ctx: Context, args):
    n, file_arg = _line_count("head", args)
    if file_arg is None:
        raise MissingOperand("head: missing file operand")
    return Result(_read_file(ctx, "head", file_arg).content.split("\n")[:n])


def cmd_tail(ctx: Context, args):
    n, file_arg = _line_count("tail", args)
    if file_arg is None:
        raise MissingOperand("tail: missing file operand")
    lines = _read_file(ctx, "tail", file_arg).content.split("\n")
    return Result(lines[-n:] if n else [])


def cmd_wc(ctx: Context, args):
    file_arg = next(iter(operands(args)), None)
    if file_arg is None:
        raise MissingOperand("wc: missing file operand")
    content = _read_file(ctx, "wc", file_arg).content
    lines = len(content.splitlines())
    words = len(content.split())
    chars = len(content)
    return output(f"{lines:>7} {words:>7} {chars:>7} {file_arg}")
