from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from treedoc.annotations import DEFAULT_SECTION, AnnotationConfig
from treedoc.scanner import CommandBlock
from treedoc.tree_output import (
    ListingDeps,
    TreeRow,
    default_deps,
    listing_root_argument,
    normalize_listing_output,
    parse_tree_output,
    run_listing,
)

NOTE_GUTTER = 2


@dataclass(frozen=True)
class NoteSelection:
    notes: dict[str, str]
    selector_issue: str | None = None
    selected_section: str | None = None


@dataclass(frozen=True)
class RenderResult:
    body_text: str
    selector_issue: str | None = None
    unused_annotation_keys: tuple[str, ...] = ()
    used_annotation_keys: frozenset[str] = field(default_factory=frozenset)
    selected_section: str | None = None


def resolve_notes(config: AnnotationConfig | None, selector: str | None) -> NoteSelection:
    if config is None:
        if selector is None:
            return NoteSelection(notes={})
        return NoteSelection(
            notes={},
            selector_issue=(
                f"Annotation selector {{{selector}}} was given but no annotation "
                "config file was discovered."
            ),
        )
    if selector is None:
        return NoteSelection(notes=config.default_notes, selected_section=DEFAULT_SECTION)
    section = config.section(selector)
    if section is not None:
        return NoteSelection(notes=section, selected_section=selector)
    source = f" in {config.source_path}" if config.source_path is not None else ""
    return NoteSelection(
        notes=config.default_notes,
        selector_issue=(
            f"Annotation selector {{{selector}}} did not match any configured "
            f"section{source}; using {DEFAULT_SECTION} notes instead."
        ),
        selected_section=DEFAULT_SECTION,
    )


def note_key_for_row(row: TreeRow, notes: dict[str, str]) -> str | None:
    path = row.relative_path
    if path is None:
        return None
    if path == ".":
        return "." if "." in notes else None
    candidates = (f"{path}/", path) if row.is_directory else (path,)
    for key in candidates:
        if key in notes:
            return key
    return None


def render_rows(rows: list[TreeRow], notes: dict[str, str]) -> tuple[str, set[str]]:
    """Append ``# note`` to annotated rows, aligned on one gutter column."""
    used: set[str] = set()
    if not notes:
        return "\n".join(row.raw_line for row in rows), used
    width = max((len(row.raw_line) for row in rows), default=0) + NOTE_GUTTER
    lines: list[str] = []
    for row in rows:
        key = note_key_for_row(row, notes)
        if key is None:
            lines.append(row.raw_line)
            continue
        used.add(key)
        lines.append(f"{row.raw_line.ljust(width)}# {notes[key]}")
    return "\n".join(lines), used


def render_block(
    block: CommandBlock,
    repo_root: Path,
    config: AnnotationConfig | None,
    deps: ListingDeps | None = None,
) -> RenderResult:
    deps = deps or default_deps()
    output = normalize_listing_output(run_listing(block.command_args, repo_root, deps))
    selection = resolve_notes(config, block.annotation_token)
    if not selection.notes:
        return RenderResult(
            body_text=output,
            selector_issue=selection.selector_issue,
            selected_section=selection.selected_section,
        )
    root_dir = (repo_root / listing_root_argument(block.command_args)).resolve()
    rows = parse_tree_output(output, root_dir, stat_fn=deps.stat)
    body, used = render_rows(rows, selection.notes)
    unused = tuple(sorted(key for key in selection.notes if key not in used))
    return RenderResult(
        body_text=body,
        selector_issue=selection.selector_issue,
        unused_annotation_keys=unused,
        used_annotation_keys=frozenset(used),
        selected_section=selection.selected_section,
    )
