"""Run ``tree`` and rebuild relative paths from its indented text output."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
import re
import stat
import subprocess
from typing import Callable, Iterator

from treedoc.exceptions import CommandFailed, MultiplePathsUnsupported
from treedoc.scanner import LISTING_COMMAND

RunCommand = Callable[..., subprocess.CompletedProcess[str]]
StatFn = Callable[[Path], os.stat_result]

# Options of tree(1) that take the following token as their value.
VALUE_FLAGS: frozenset[str] = frozenset(
    {
        "-L",
        "-P",
        "-I",
        "-o",
        "-H",
        "-T",
        "--charset",
        "--filelimit",
        "--timefmt",
        "--sort",
        "--hintro",
        "--houtro",
        "--infile",
    }
)

_BOX_ENTRY_RE = re.compile(r"^(?P<prefix>(?:│   |    )*)(?:├── |└── )(?P<name>.*)$")
_ASCII_ENTRY_RE = re.compile(r"^(?P<prefix>(?:\|   |    )*)(?:\|-- |`-- )(?P<name>.*)$")
_NOTE_SUFFIX_RE = re.compile(r"\s+# .*$")
_TYPE_INDICATORS = "/@=*|"
_GROUP_WIDTH = 4


@dataclass(frozen=True)
class ListingDeps:
    run: RunCommand
    stat: StatFn


@dataclass(frozen=True)
class TreeRow:
    raw_line: str
    relative_path: str | None
    is_directory: bool


def default_deps() -> ListingDeps:
    return ListingDeps(run=subprocess.run, stat=os.stat)


def run_listing(
    args: tuple[str, ...] | list[str],
    repo_root: Path,
    deps: ListingDeps | None = None,
) -> str:
    deps = deps or default_deps()
    argv = [LISTING_COMMAND, *args]
    try:
        completed = deps.run(
            argv,
            cwd=str(repo_root),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as exc:
        raise CommandFailed(argv, str(exc)) from exc
    if completed.returncode != 0:
        detail = (completed.stderr or "").strip() or (completed.stdout or "").strip()
        raise CommandFailed(argv, detail or "no output", returncode=completed.returncode)
    return completed.stdout or ""


def normalize_listing_output(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\u00a0", " ")
    return text.rstrip("\n")


def listing_root_argument(args: tuple[str, ...] | list[str]) -> str:
    """Return the single directory argument passed to ``tree`` (``.`` if none)."""
    positionals: list[str] = []
    expecting_value = False
    flags_done = False
    for token in args:
        if expecting_value:
            expecting_value = False
            continue
        if flags_done or not token.startswith("-") or token == "-":
            positionals.append(token)
            continue
        if token == "--":
            flags_done = True
            continue
        if token in VALUE_FLAGS:
            expecting_value = True
    if len(positionals) > 1:
        raise MultiplePathsUnsupported(positionals)
    return positionals[0] if positionals else "."


def normalize_root_path(path: str) -> str:
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = normalized.rstrip("/")
    return normalized or "."


def clean_entry_name(name: str) -> str:
    cleaned = _NOTE_SUFFIX_RE.sub("", name)
    if " -> " in cleaned:
        cleaned = cleaned.split(" -> ", 1)[0]
    cleaned = cleaned.rstrip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in ("'", '"'):
        cleaned = cleaned[1:-1]
    elif len(cleaned) >= 3 and cleaned[0] in ("'", '"') and cleaned[-2] == cleaned[0]:
        # tree -QF appends the indicator after the closing quote
        cleaned = cleaned[1:-2] + cleaned[-1]
    if cleaned[-1:] and cleaned[-1] in _TYPE_INDICATORS:
        cleaned = cleaned[:-1]
    return cleaned


def _match_entry(line: str) -> tuple[int, str] | None:
    match = _BOX_ENTRY_RE.match(line) or _ASCII_ENTRY_RE.match(line)
    if match is None:
        return None
    return len(match.group("prefix")) // _GROUP_WIDTH + 1, match.group("name")


def _iter_line_paths(lines: list[str]) -> Iterator[tuple[str, str | None, str | None]]:
    """Yield ``(line, relative_path, raw_name)`` for every listing line.

    The first line is the root (``.``). ``cursor[d]`` holds the path of the
    most recent entry at depth ``d`` and is cut back after every entry.
    """
    cursor: list[str] = []
    for index, line in enumerate(lines):
        if index == 0:
            cursor = ["."]
            yield line, ".", None
            continue
        entry = _match_entry(line)
        if entry is None:
            yield line, None, None
            continue
        depth, raw_name = entry
        name = clean_entry_name(raw_name)
        if not name or depth > len(cursor):
            yield line, None, raw_name
            continue
        parent = cursor[depth - 1]
        path = name if parent == "." else f"{parent}/{name}"
        del cursor[depth:]
        cursor.append(path)
        yield line, path, raw_name


def tree_line_paths(lines: list[str]) -> list[str | None]:
    return [path for _, path, _ in _iter_line_paths(lines)]


def _is_directory(root_dir: Path, relative_path: str, raw_name: str, stat_fn: StatFn) -> bool:
    try:
        mode = stat_fn(root_dir / relative_path).st_mode
    except OSError:
        return _NOTE_SUFFIX_RE.sub("", raw_name).rstrip().endswith("/")
    return stat.S_ISDIR(mode)


def parse_tree_output(
    text: str,
    root_dir: Path,
    *,
    stat_fn: StatFn = os.stat,
) -> list[TreeRow]:
    if not text:
        return []
    rows: list[TreeRow] = []
    for line, path, raw_name in _iter_line_paths(text.split("\n")):
        if path is None:
            rows.append(TreeRow(raw_line=line, relative_path=None, is_directory=False))
        elif raw_name is None:
            rows.append(TreeRow(raw_line=line, relative_path=path, is_directory=True))
        else:
            rows.append(
                TreeRow(
                    raw_line=line,
                    relative_path=path,
                    is_directory=_is_directory(root_dir, path, raw_name, stat_fn),
                )
            )
    return rows
