"""
Network and package-manager simulations.

None of these touch a real network. Each handler builds a scripted
``DeferredTask``: its preamble is printed at once, further lines arrive on
timer ticks, and the completion effect (write a downloaded file, register
a package) runs once at 100%. Randomized details (sizes, timings,
versions) are drawn up front from the context's random source, so a
task's ticks are a pure function of its progress.

Installed packages are namespaced as ``<manager>:<name>``.
"""
from __future__ import annotations

import json
from urllib.parse import urlsplit

from config.settings import TASK_INTERVALS
from core.commands import Context, Result, operands, output
from core.errors import AlreadySatisfied, InvalidOperand, MissingOperand, NotInstalled
from core.state import Session
from core.tasks import DeferredTask
from core.virtual_fs import File


def _option(args: list[str], flag: str, cmd: str) -> tuple[str | None, list[str]]:
    """Pull ``flag <value>`` out of ``args``; returns the value and the remaining args."""
    if flag not in args:
        return None, list(args)
    idx = args.index(flag)
    if idx + 1 >= len(args):
        raise MissingOperand(f"{cmd}: option requires an argument -- '{flag.lstrip('-')}'")
    return args[idx + 1], args[:idx] + args[idx + 2:]


def _host(url: str) -> str:
    return urlsplit(url if "//" in url else "//" + url).hostname or url


def _fake_ip(ctx: Context) -> str:
    return ".".join(str(ctx.rng.randint(1, 254)) for _ in range(4))


# ── wget ──────────────────────────────────────────────────────────────────────

def cmd_wget(ctx: Context, args):
    out_arg, rest = _option(args, "-O", "wget")
    urls = operands(rest)
    if not urls:
        raise MissingOperand("wget: missing URL")
    url = urls[0]
    out = out_arg or url.split("/")[-1] or "index.html"
    path = ctx.resolve(out)

    host   = _host(url)
    ip     = _fake_ip(ctx)
    length = ctx.rng.randrange(10_000_000)
    preamble = (
        f"--{ctx.clock().isoformat(timespec='seconds')}--  {url}",
        f"Resolving {host}... {ip}",
        f"Connecting to {host}|{ip}|:443... connected.",
        "HTTP request sent, awaiting response... 200 OK",
        f"Length: {length} ({length / 1_000_000:.1f}M) [application/octet-stream]",
        f"Saving to: '{out}'",
        "",
    )

    def render(progress: int):
        filled = progress // 5
        lines = [f"[{'=' * filled}>{' ' * (20 - filled)}] {progress}%"]
        if progress >= 100:
            lines += ["", f"'{out}' saved", ""]
        return lines

    def effect(session: Session) -> Session:
        return session.write(path, File(f"Downloaded from {url}"))

    return Result(task=DeferredTask(
        "wget", step=15, interval=TASK_INTERVALS["wget"],
        render=render, preamble=preamble, effect=effect,
    ))


# ── curl ──────────────────────────────────────────────────────────────────────

def cmd_curl(ctx: Context, args):
    out_arg, rest = _option(args, "-o", "curl")
    urls = operands(rest)
    if not urls:
        raise MissingOperand("curl: no URL specified")
    url  = urls[0]
    body = f"<html><body>Content from {url}</body></html>"

    if out_arg is None:
        def render(progress: int):
            return ["HTTP/1.1 200 OK", "Content-Type: text/html", "", body]
        effect = None
    else:
        path  = ctx.resolve(out_arg)
        size  = len(body)
        speed = ctx.rng.randint(2_000, 90_000)

        def render(progress: int):
            return [
                "  % Total    % Received % Xferd  Average Speed   Time",
                f"100  {size:>4}  100  {size:>4}    0     0  {speed:>6}      0 --:--:--",
            ]

        def effect(session: Session) -> Session:
            return session.write(path, File(body))

    return Result(task=DeferredTask(
        "curl", step=100, interval=TASK_INTERVALS["curl"], render=render, effect=effect,
    ))


# ── ping ──────────────────────────────────────────────────────────────────────

PING_COUNT = 4


def cmd_ping(ctx: Context, args):
    hosts = operands(args)
    if not hosts:
        raise MissingOperand("ping: missing host")
    host  = hosts[0]
    times = [ctx.rng.uniform(10, 60) for _ in range(PING_COUNT)]
    step  = 100 // PING_COUNT

    def render(progress: int):
        seq = progress // step - 1
        lines = [f"64 bytes from {host}: icmp_seq={seq} ttl=64 time={times[seq]:.1f} ms"]
        if progress >= 100:
            lines += [
                "",
                f"--- {host} ping statistics ---",
                f"{PING_COUNT} packets transmitted, {PING_COUNT} received, 0% packet loss",
            ]
        return lines

    return Result(task=DeferredTask(
        "ping", step=step, interval=TASK_INTERVALS["ping"], render=render,
        preamble=(f"PING {host} (93.184.216.34): 56 data bytes",),
    ))


# ── winget ────────────────────────────────────────────────────────────────────

def _winget_package(args: list[str]) -> str:
    pkg, rest = _option(args, "--id", "winget")
    if pkg is None:
        names = operands(rest[1:])
        pkg = names[0] if names else None
    if not pkg:
        raise MissingOperand("winget: missing package name")
    return pkg


def cmd_winget(ctx: Context, args):
    if not args:
        raise MissingOperand("winget: missing command")
    sub = args[0]

    if sub == "list":
        names = ctx.session.packages_for("winget")
        if not names:
            return output("No installed package found matching input criteria.")
        return output("Name", "-" * 20, *names)

    if sub == "uninstall":
        pkg = _winget_package(args)
        if not ctx.session.has_package("winget", pkg):
            raise NotInstalled("No installed package found matching input criteria.")
        return Result([f"Successfully uninstalled {pkg}"], ctx.session.uninstall("winget", pkg))

    if sub != "install":
        raise InvalidOperand("winget: unknown command")

    pkg = _winget_package(args)
    if ctx.session.has_package("winget", pkg):
        raise AlreadySatisfied(
            "Found an existing package already installed. Trying to upgrade the installed package...\n"
            "No available upgrade found."
        )

    def render(progress: int):
        filled = progress // 5
        lines = [f"  ██{'█' * filled}{'░' * (20 - filled)}  {progress}%"]
        if progress >= 100:
            lines += [f"Successfully installed {pkg}", ""]
        return lines

    return Result(task=DeferredTask(
        "winget", step=20, interval=TASK_INTERVALS["winget"], render=render,
        preamble=(
            f"Found {pkg} [{pkg}]",
            "This application is licensed to you by its owner.",
            "Microsoft is not responsible for, nor does it grant any licenses to, third-party packages.",
            f"Downloading {pkg}...",
        ),
        effect=lambda session: session.install("winget", pkg),
    ))


# ── apt ───────────────────────────────────────────────────────────────────────

APT_USAGE = "Usage: apt [install|remove|list|update] <package>"


def cmd_apt(ctx: Context, args):
    if not args:
        raise MissingOperand(APT_USAGE)
    sub, names = args[0], operands(args[1:])

    if sub == "update":
        return Result(task=DeferredTask(
            "apt", step=100, interval=TASK_INTERVALS["apt-update"],
            render=lambda progress: ["All packages are up to date."],
            preamble=("Hit:1 http://archive.ubuntu.com/ubuntu focal InRelease", "Reading package lists..."),
        ))

    if sub == "list":
        return output("Installed packages:", *(f"  {p}" for p in ctx.session.packages_for("apt")))

    if sub == "remove" and names:
        pkg = names[0]
        if not ctx.session.has_package("apt", pkg):
            raise NotInstalled(f"Package '{pkg}' is not installed")
        return Result([f"Removing {pkg}...", "Done."], ctx.session.uninstall("apt", pkg))

    if sub != "install" or not names:
        raise InvalidOperand(APT_USAGE)

    pkg = names[0]
    if ctx.session.has_package("apt", pkg):
        raise AlreadySatisfied(f"{pkg} is already the newest version")

    fetched = ctx.rng.randrange(5000)

    def render(progress: int):
        if progress < 100:
            return [f"Fetched {fetched}kB in 2s", f"Unpacking {pkg}...", f"Setting up {pkg}..."]
        return ["Processing triggers...", "Done."]

    return Result(task=DeferredTask(
        "apt", step=50, interval=TASK_INTERVALS["apt-install"], render=render,
        preamble=(
            "Reading package lists...",
            "Building dependency tree...",
            "The following NEW packages will be installed:",
            f"  {pkg}",
            "0 upgraded, 1 newly installed, 0 to remove",
            f"Need to get {ctx.rng.randrange(5000)}kB of archives.",
            f"Get:1 http://archive.ubuntu.com/ubuntu focal/main amd64 {pkg} amd64 1.0 "
            f"[{ctx.rng.randrange(1000)}kB]",
        ),
        effect=lambda session: session.install("apt", pkg),
    ))


# ── npm ───────────────────────────────────────────────────────────────────────

NPM_USAGE = "Usage: npm [install|uninstall|list|init] <package>"


def cmd_npm(ctx: Context, args):
    if not args:
        raise MissingOperand(NPM_USAGE)
    sub, names = args[0], operands(args[1:])

    if sub == "init":
        path = ctx.resolve("package.json")
        manifest = json.dumps({"name": "my-project", "version": "1.0.0"}, indent=2)
        return Result(task=DeferredTask(
            "npm", step=100, interval=TASK_INTERVALS["npm-init"],
            render=lambda progress: ["Wrote to package.json"],
            preamble=("This utility will walk you through creating a package.json file.",),
            effect=lambda session: session.write(path, File(manifest)),
        ))

    if sub in ("list", "ls"):
        installed = ctx.session.packages_for("npm")
        if not installed:
            return output("(empty)")
        return output(*(f"├── {p}@latest" for p in installed))

    if sub == "uninstall" and names:
        pkg = names[0]
        if not ctx.session.has_package("npm", pkg):
            raise NotInstalled(f"npm ERR! Cannot find module '{pkg}'")
        return Result(["removed 1 package in 0.4s"], ctx.session.uninstall("npm", pkg))

    if sub != "install" or not names:
        raise InvalidOperand(NPM_USAGE)

    pkg = names[0]
    if ctx.session.has_package("npm", pkg):
        raise AlreadySatisfied("up to date, audited 1 package in 0.5s")

    return Result(task=DeferredTask(
        "npm", step=100, interval=TASK_INTERVALS["npm-install"],
        render=lambda progress: ["found 0 vulnerabilities"],
        preamble=("", f"added 1 package, and audited 2 packages in {ctx.rng.uniform(1, 4):.1f}s"),
        effect=lambda session: session.install("npm", pkg),
    ))


# ── pip ───────────────────────────────────────────────────────────────────────

PIP_USAGE = "Usage: pip [install|uninstall|list] <package>"


def cmd_pip(ctx: Context, args):
    if not args:
        raise MissingOperand(PIP_USAGE)
    sub, names = args[0], operands(args[1:])

    if sub == "list":
        installed = ctx.session.packages_for("pip")
        if not installed:
            return output("(empty)")
        return output(
            "Package    Version",
            "---------- -------",
            *(f"{p:<10} {ctx.rng.uniform(0, 10):.1f}.0" for p in installed),
        )

    if sub == "uninstall" and names:
        pkg = names[0]
        if not ctx.session.has_package("pip", pkg):
            raise NotInstalled(f"WARNING: Skipping {pkg} as it is not installed.")
        return Result([f"Successfully uninstalled {pkg}"], ctx.session.uninstall("pip", pkg))

    if sub != "install" or not names:
        raise InvalidOperand(PIP_USAGE)

    pkg = names[0]
    if ctx.session.has_package("pip", pkg):
        raise AlreadySatisfied(f"Requirement already satisfied: {pkg}")

    version = ".".join(str(ctx.rng.randrange(10)) for _ in range(3))
    return Result(task=DeferredTask(
        "pip", step=100, interval=TASK_INTERVALS["pip-install"],
        render=lambda progress: [
            f"Installing collected packages: {pkg}",
            f"Successfully installed {pkg}-{version}",
        ],
        preamble=(
            f"Collecting {pkg}",
            f"  Downloading {pkg}-{version}-py3-none-any.whl ({ctx.rng.randrange(500)} kB)",
            f"     |████████████████████████████████| {ctx.rng.randrange(500)} kB 1.2 MB/s",
        ),
        effect=lambda session: session.install("pip", pkg),
    ))
