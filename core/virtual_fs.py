"""
Virtual Filesystem (VFS) for the web terminal.

The tree is persistent: nodes are frozen, and every write returns a new
``VirtualFS`` that shares all untouched subtrees with the previous one.
Only the directories on the path from ``~`` to the written node are
copied, so holding on to an old snapshot is always safe.

All paths handed to the store are canonical (see ``core.paths``); the
store never expands ``~`` or relative segments itself.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Union

from core.errors import NotADirectory
from core.paths import HOME, split

FILE_PERMISSIONS = "-rw-r--r--"
DIR_PERMISSIONS  = "drwxr-xr-x"


@dataclass(frozen=True, eq=True)
class File:
    content: str = ""
    permissions: str = FILE_PERMISSIONS

    is_dir = False


@dataclass(frozen=True, eq=True)
class Directory:
    contents: Mapping[str, "Node"] = field(default_factory=dict)
    permissions: str = DIR_PERMISSIONS

    is_dir = True

    def with_child(self, name: str, node: Optional["Node"]) -> "Directory":
        contents = dict(self.contents)
        if node is None:
            contents.pop(name, None)
        else:
            contents[name] = node
        return replace(self, contents=contents)


Node = Union[File, Directory]


class VirtualFS:
    """Immutable snapshot of the filesystem tree rooted at ``~``."""

    __slots__ = ("_root",)

    def __init__(self, root: Optional[Directory] = None):
        self._root = root if root is not None else Directory()

    def get(self, path: str) -> Optional[Node]:
        """Return the node at ``path`` or None; never descends through a file."""
        node: Node = self._root
        for part in split(path):
            if not node.is_dir or part not in node.contents:
                return None
            node = node.contents[part]
        return node

    def exists(self, path: str) -> bool:
        return self.get(path) is not None

    def is_dir(self, path: str) -> bool:
        node = self.get(path)
        return node is not None and node.is_dir

    def set(self, path: str, node: Optional[Node]) -> "VirtualFS":
        """
        Write ``node`` at ``path`` (None deletes it and its subtree).

        Missing intermediate directories are created empty. Raises
        NotADirectory if an intermediate segment is a file.
        """
        parts = split(path)
        if not parts:
            if node is None or not node.is_dir:
                raise NotADirectory(f"{HOME}: cannot replace the home directory")
            return VirtualFS(node)
        return VirtualFS(self._write(self._root, parts, node, path))

    def _write(self, directory: Directory, parts: list[str], node: Optional[Node], path: str) -> Directory:
        name, rest = parts[0], parts[1:]
        if not rest:
            if node is None and name not in directory.contents:
                return directory
            return directory.with_child(name, node)

        child = directory.contents.get(name)
        if child is None:
            if node is None:
                return directory
            child = Directory()
        elif not child.is_dir:
            raise NotADirectory(f"{path}: Not a directory")
        return directory.with_child(name, self._write(child, rest, node, path))

    def walk(self, path: str):
        """Yield ``(path, node)`` pairs in pre-order, children sorted by name."""
        node = self.get(path)
        if node is None:
            return
        stack = [(path, node)]
        while stack:
            current, n = stack.pop()
            yield current, n
            if n.is_dir:
                for name in sorted(n.contents, reverse=True):
                    stack.append((current.rstrip("/") + "/" + name, n.contents[name]))


# ── Seed tree ─────────────────────────────────────────────────────────────────

def build_vfs() -> VirtualFS:
    """Return a fresh filesystem for each terminal."""
    return VirtualFS(Directory({
        "documents":  Directory(),
        ".local":     Directory({
            "bin":        Directory(),
        }),
        "readme.txt": File("Welcome to Web Terminal!"),
    }))
