"""
Path resolution for the virtual filesystem.

Every path the user types goes through ``resolve`` before it reaches the
filesystem store. The result is always anchored at ``~`` (the only root)
and contains no ``.``/``..`` or empty segments.
"""

HOME = "~"


def resolve(path: str, cwd: str = HOME) -> str:
    """Turn a raw user path into a canonical ``~``-anchored path."""
    if not path or path == HOME:
        return HOME
    if path.startswith(HOME):
        raw = path
    elif path.startswith("/"):
        # There is no separate filesystem root; "/" means home.
        raw = HOME + path
    else:
        raw = HOME + "/" + path if cwd == HOME else cwd + "/" + path

    segments = raw.split("/")
    if segments[0] == HOME:
        segments = segments[1:]

    parts = []
    for seg in segments:
        if seg == "..":
            if parts:
                parts.pop()
        elif seg and seg != ".":
            parts.append(seg)
    return join(HOME, *parts)


def join(base: str, *names: str) -> str:
    parts = [base.rstrip("/")] + [n for n in names if n]
    return "/".join(parts)


def split(path: str) -> list[str]:
    """Segments below ``~`` of a canonical path."""
    return [p for p in path.split("/")[1:] if p]


def basename(path: str) -> str:
    segs = split(path)
    return segs[-1] if segs else HOME


def is_within(path: str, ancestor: str) -> bool:
    """True if ``path`` is ``ancestor`` or lies below it."""
    return path == ancestor or path.startswith(ancestor.rstrip("/") + "/")
