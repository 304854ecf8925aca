"""
Shell error taxonomy.

Every error a command can report is a ``ShellError`` whose message is the
exact line shown to the user. Handlers raise; the dispatcher turns the
exception into an ordinary output line, so a failed command never ends
the session.
"""


class ShellError(Exception):
    """Base class for all user-facing command errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message

    def lines(self) -> list[str]:
        return self.message.split("\n")


class MissingOperand(ShellError):
    """No or too few arguments."""


class InvalidOperand(ShellError):
    """An argument is present but unusable (bad count, forbidden target)."""


class NotFound(ShellError):
    """A path does not resolve to a node."""

    def __init__(self, command: str, path: str, template: str = "{cmd}: {path}: No such file or directory"):
        super().__init__(template.format(cmd=command, path=path))
        self.path = path


class NotADirectory(ShellError):
    """A directory was required but a file was found."""


class IsADirectory(ShellError):
    """A file was required but a directory was found."""


class InvalidSyntax(ShellError):
    """Malformed ``export`` or ``calc`` input."""


class UnknownCommand(ShellError):
    def __init__(self, name: str):
        super().__init__(f"Command not found: {name}. Type 'help' for available commands.")
        self.name = name


class AlreadySatisfied(ShellError):
    """Package is already installed; reported as a plain message."""


class NotInstalled(ShellError):
    """Package removal requested for a package that is not installed."""
