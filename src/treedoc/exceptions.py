"""Error taxonomy for treedoc.

Block-scoped errors are converted into issues by :mod:`treedoc.check`;
:class:`MalformedConfig` is file-scoped and aborts annotation resolution for
the whole document.
"""

from __future__ import annotations

from pathlib import Path


class TreedocError(RuntimeError):
    pass


class UnterminatedQuote(TreedocError):
    def __init__(self, quote: str, column: int):
        super().__init__(f"unterminated {quote} quote starting at column {column}")
        self.quote = quote
        self.column = column


class UnterminatedBlock(TreedocError):
    def __init__(self, line_number: int):
        super().__init__(f"code fence opened on line {line_number} is never closed")
        self.line_number = line_number


class MultipleSelectors(TreedocError):
    def __init__(self, first: str, second: str):
        super().__init__(
            f"multiple annotation selectors ({{{first}}} and {{{second}}}); "
            "at most one is allowed"
        )
        self.first = first
        self.second = second


class MalformedConfig(TreedocError):
    def __init__(self, path: Path | str | None, line: int, message: str):
        location = str(path) if path is not None else "<annotations>"
        super().__init__(f"{location}:{line}: {message}")
        self.path = path
        self.line = line
        self.message = message


class CommandFailed(TreedocError):
    def __init__(self, argv: list[str], detail: str, *, returncode: int | None = None):
        command = " ".join(argv)
        if returncode is None:
            text = f"could not run `{command}`: {detail}"
        else:
            text = f"`{command}` exited with status {returncode}: {detail}"
        super().__init__(text)
        self.argv = list(argv)
        self.detail = detail
        self.returncode = returncode


class MultiplePathsUnsupported(TreedocError):
    def __init__(self, paths: list[str]):
        super().__init__(
            "annotations require a single path argument, got: " + ", ".join(paths)
        )
        self.paths = list(paths)
