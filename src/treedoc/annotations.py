"""Annotation files: a two-level, YAML-like mapping of sections to path notes.

    [default]:
      src/: Library code
      README.md: "Start here"

    guide:
      docs/index.md: Landing page   # trailing comments are dropped

Only this subset is understood; anything else is a :class:`MalformedConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
import re

from treedoc.exceptions import MalformedConfig

DEFAULT_SECTION = "[default]"
DEFAULT_SECTION_ALIASES: frozenset[str] = frozenset({"default", DEFAULT_SECTION})
ANNOTATION_FILENAMES: tuple[str, ...] = (
    ".treedoc-annotations.yml",
    "treedoc-annotations.yml",
)

_ENTRY_INDENT = 2
_BARE_KEY_END_RE = re.compile(r":(?=\s|$)")
_SIMPLE_ESCAPES = {
    "\\": "\\",
    '"': '"',
    "/": "/",
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
    "b": "\b",
    "f": "\f",
}
_HEX_ESCAPE_WIDTHS = {"x": 2, "u": 4}


@dataclass(frozen=True)
class AnnotationConfig:
    sections: dict[str, dict[str, str]] = field(
        default_factory=lambda: {DEFAULT_SECTION: {}}
    )
    source_path: Path | None = None

    def section(self, name: str) -> dict[str, str] | None:
        return self.sections.get(name)

    @property
    def default_notes(self) -> dict[str, str]:
        return self.sections.get(DEFAULT_SECTION, {})


def normalize_annotation_key(key: str) -> str:
    """Normalize a path key; directory keys keep their trailing ``/``."""
    path = key.strip().replace("\\", "/")
    path = re.sub(r"/{2,}", "/", path)
    while path.startswith("./"):
        path = path[2:]
    path = path.lstrip("/")
    if path in ("", "."):
        return "."
    return path


def normalize_section_name(name: str) -> str:
    return DEFAULT_SECTION if name in DEFAULT_SECTION_ALIASES else name


def _split_comment(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("#"):
        return ""
    match = re.search(r"\s#", stripped)
    if match is not None:
        stripped = stripped[: match.start()]
    return stripped.strip()


def _read_double_quoted(text: str, start: int, error) -> tuple[str, int]:
    chars: list[str] = []
    index = start + 1
    while index < len(text):
        char = text[index]
        if char == '"':
            return "".join(chars), index + 1
        if char != "\\":
            chars.append(char)
            index += 1
            continue
        if index + 1 >= len(text):
            break
        escape = text[index + 1]
        if escape in _SIMPLE_ESCAPES:
            chars.append(_SIMPLE_ESCAPES[escape])
            index += 2
            continue
        width = _HEX_ESCAPE_WIDTHS.get(escape)
        if width is None:
            raise error(f"unknown escape sequence \\{escape}")
        digits = text[index + 2 : index + 2 + width]
        if len(digits) != width or not all(c in "0123456789abcdefABCDEF" for c in digits):
            raise error(f"invalid \\{escape} escape")
        chars.append(chr(int(digits, 16)))
        index += 2 + width
    raise error("unterminated double-quoted string")


def _read_single_quoted(text: str, start: int, error) -> tuple[str, int]:
    chars: list[str] = []
    index = start + 1
    while index < len(text):
        char = text[index]
        if char == "'":
            if text[index + 1 : index + 2] == "'":
                chars.append("'")
                index += 2
                continue
            return "".join(chars), index + 1
        chars.append(char)
        index += 1
    raise error("unterminated single-quoted string")


def _read_quoted(text: str, error) -> tuple[str, str]:
    """Read a quoted scalar at the start of ``text``; return it and the remainder."""
    if text[0] == '"':
        value, end = _read_double_quoted(text, 0, error)
    else:
        value, end = _read_single_quoted(text, 0, error)
    return value, text[end:]


def _split_key(content: str, error) -> tuple[str, str]:
    if content[:1] in ("'", '"'):
        key, rest = _read_quoted(content, error)
        rest = rest.lstrip(" ")
        if not rest.startswith(":"):
            raise error("expected ':' after quoted key")
        return key, rest[1:]
    match = _BARE_KEY_END_RE.search(content)
    if match is None:
        raise error("expected 'key:'")
    return content[: match.start()].strip(), content[match.end():]


def _parse_value(text: str, error) -> str:
    stripped = text.strip()
    if stripped[:1] in ("'", '"'):
        value, rest = _read_quoted(stripped, error)
        if _split_comment(rest):
            raise error("unexpected text after quoted value")
        return value
    return _split_comment(stripped)


def parse_annotation_config(
    text: str, source_path: Path | str | None = None
) -> AnnotationConfig:
    path = Path(source_path) if source_path is not None else None
    sections: dict[str, dict[str, str]] = {DEFAULT_SECTION: {}}
    current: dict[str, str] | None = None
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    for line_number, raw in enumerate(lines, start=1):
        error = partial(MalformedConfig, path, line_number)
        line = raw.rstrip()
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        content = line.lstrip(" \t")
        leading = line[: len(line) - len(content)]
        if "\t" in leading:
            raise error("tab characters are not allowed in indentation")
        indent = len(leading)
        if indent == 0:
            name, rest = _split_key(content, error)
            if _split_comment(rest):
                raise error(f"section {name!r} must not have a value")
            if not name:
                raise error("empty section name")
            current = sections.setdefault(normalize_section_name(name), {})
            continue
        if indent != _ENTRY_INDENT:
            raise error(f"indentation must be 0 or {_ENTRY_INDENT} spaces, got {indent}")
        if current is None:
            raise error("entry appears outside of any section")
        key, rest = _split_key(content, error)
        if not key:
            raise error("empty path key")
        if not _split_comment(rest):
            raise error(f"entry {key!r} has no note")
        current[normalize_annotation_key(key)] = _parse_value(rest, error)
    return AnnotationConfig(sections=sections, source_path=path)


def load_annotation_config(path: Path) -> AnnotationConfig:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise MalformedConfig(path, 0, f"cannot read file: {exc.strerror or exc}") from exc
    return parse_annotation_config(text, source_path=path)


def discover_annotation_file(start: Path, *, stop: Path | None = None) -> Path | None:
    """Walk up from ``start`` looking for one of :data:`ANNOTATION_FILENAMES`.

    The walk ends at ``stop`` (inclusive) when ``start`` lies beneath it,
    otherwise at the filesystem root.
    """
    current = start.resolve()
    boundary = stop.resolve() if stop is not None else None
    if boundary is not None and boundary != current and boundary not in current.parents:
        boundary = None
    while True:
        for name in ANNOTATION_FILENAMES:
            candidate = current / name
            if candidate.is_file():
                return candidate
        if current == boundary or current.parent == current:
            return None
        current = current.parent
