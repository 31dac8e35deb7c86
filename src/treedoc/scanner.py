"""Locate fenced ``tree`` invocations inside a Markdown document."""

from __future__ import annotations

from dataclasses import dataclass, field
import re

from treedoc.exceptions import MultipleSelectors, TreedocError, UnterminatedBlock
from treedoc.lexer import tokenize

SHELL_ALIASES: frozenset[str] = frozenset(
    {"sh", "bash", "shell", "zsh", "console", "shell-session"}
)
LISTING_COMMAND = "tree"

_FENCE_OPEN_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<fence>`{3,})(?P<info>[^`]*)$")
_SELECTOR_RE = re.compile(r"^\{(?P<name>[A-Za-z_][A-Za-z0-9_.-]*)\}$")


@dataclass(frozen=True)
class Issue:
    line_number: int
    detail: str
    out_of_sync_paths: tuple[str, ...] | None = None


@dataclass(frozen=True)
class CommandBlock:
    info_text: str
    command_args: tuple[str, ...]
    annotation_token: str | None
    start_line: int
    body_start_line: int
    open_line_index: int
    close_line_index: int
    body_text: str
    indent: str = ""

    @property
    def body_lines(self) -> list[str]:
        if not self.body_text and self.close_line_index == self.open_line_index + 1:
            return []
        return self.body_text.split("\n")


@dataclass(frozen=True)
class ScanResult:
    blocks: list[CommandBlock] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _close_fence_pattern(indent: str, fence: str) -> re.Pattern[str]:
    return re.compile("^" + re.escape(indent) + re.escape(fence) + r"[ \t]*$")


def _looks_like_listing(info: str) -> bool:
    words = info.split()
    return len(words) >= 2 and words[0] in SHELL_ALIASES and words[1] == LISTING_COMMAND


def split_command_tokens(tokens: list[str]) -> tuple[tuple[str, ...], str | None]:
    """Partition the tokens after ``<shell> tree`` into arguments and a selector."""
    args: list[str] = []
    selector: str | None = None
    for token in tokens:
        match = _SELECTOR_RE.match(token)
        if match is None:
            args.append(token)
            continue
        if selector is not None:
            raise MultipleSelectors(selector, match.group("name"))
        selector = match.group("name")
    return tuple(args), selector


def _strip_indent(line: str, indent: str) -> str:
    if indent and line.startswith(indent):
        return line[len(indent):]
    return line


def scan_document(text: str) -> ScanResult:
    lines = normalize_newlines(text).split("\n")
    blocks: list[CommandBlock] = []
    issues: list[Issue] = []
    index = 0
    while index < len(lines):
        match = _FENCE_OPEN_RE.match(lines[index])
        if match is None:
            index += 1
            continue
        indent = match.group("indent")
        info = match.group("info").strip()
        close_re = _close_fence_pattern(indent, match.group("fence"))
        close_index = next(
            (
                candidate
                for candidate in range(index + 1, len(lines))
                if close_re.match(lines[candidate])
            ),
            None,
        )
        if close_index is None:
            issues.append(Issue(index + 1, str(UnterminatedBlock(index + 1))))
            break
        try:
            block = _block_from_fence(
                info=info,
                indent=indent,
                lines=lines,
                open_index=index,
                close_index=close_index,
            )
        except TreedocError as exc:
            if _looks_like_listing(info):
                issues.append(Issue(index + 1, str(exc)))
            block = None
        if block is not None:
            blocks.append(block)
        index = close_index + 1
    return ScanResult(blocks=blocks, issues=issues)


def _block_from_fence(
    *,
    info: str,
    indent: str,
    lines: list[str],
    open_index: int,
    close_index: int,
) -> CommandBlock | None:
    tokens = tokenize(info)
    if len(tokens) < 2 or tokens[0] not in SHELL_ALIASES or tokens[1] != LISTING_COMMAND:
        return None
    args, selector = split_command_tokens(tokens[2:])
    body = [_strip_indent(line, indent) for line in lines[open_index + 1 : close_index]]
    return CommandBlock(
        info_text=info,
        command_args=args,
        annotation_token=selector,
        start_line=open_index + 1,
        body_start_line=open_index + 2,
        open_line_index=open_index,
        close_line_index=close_index,
        body_text="\n".join(body),
        indent=indent,
    )
