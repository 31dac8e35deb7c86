"""Document-level analysis and repair of ``tree`` blocks."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from treedoc.annotations import (
    AnnotationConfig,
    discover_annotation_file,
    load_annotation_config,
)
from treedoc.config import Settings
from treedoc.exceptions import MalformedConfig, TreedocError
from treedoc.render import RenderResult, render_block, resolve_notes
from treedoc.scanner import CommandBlock, Issue, normalize_newlines, scan_document
from treedoc.sync import diff_block, format_drift_detail
from treedoc.tree_output import ListingDeps, default_deps


class Mode(str, Enum):
    CHECK = "check"
    FIX = "fix"


@dataclass(frozen=True)
class DocumentReport:
    parser_issues: list[Issue] = field(default_factory=list)
    sync_issues: list[Issue] = field(default_factory=list)
    selector_issues: list[Issue] = field(default_factory=list)
    unused_annotation_issues: list[Issue] = field(default_factory=list)

    def categorized(self) -> list[tuple[str, Issue]]:
        entries = [
            *(("parser", issue) for issue in self.parser_issues),
            *(("sync", issue) for issue in self.sync_issues),
            *(("selector", issue) for issue in self.selector_issues),
            *(("unused-annotation", issue) for issue in self.unused_annotation_issues),
        ]
        return sorted(entries, key=lambda entry: entry[1].line_number)

    @property
    def is_clean(self) -> bool:
        return not (
            self.parser_issues
            or self.sync_issues
            or self.selector_issues
            or self.unused_annotation_issues
        )


@dataclass(frozen=True)
class FixResult:
    text: str
    issues: list[Issue] = field(default_factory=list)

    def changed_from(self, original: str) -> bool:
        return self.text != normalize_newlines(original)


@dataclass(frozen=True)
class DocumentOutcome:
    mode: Mode
    report: DocumentReport | None = None
    fix: FixResult | None = None


@dataclass
class _SectionUsage:
    first_line: int
    used: set[str] = field(default_factory=set)
    complete: bool = True


def resolve_annotation_config(
    document_path: Path, settings: Settings
) -> AnnotationConfig | None:
    path = settings.annotations
    if path is None:
        path = discover_annotation_file(document_path.parent, stop=settings.repo_root)
    if path is None:
        return None
    return load_annotation_config(path)


def _render_all(
    blocks: list[CommandBlock],
    *,
    repo_root: Path,
    config: AnnotationConfig | None,
    deps: ListingDeps,
) -> tuple[list[tuple[CommandBlock, RenderResult]], list[Issue], dict[str, _SectionUsage]]:
    rendered: list[tuple[CommandBlock, RenderResult]] = []
    failures: list[Issue] = []
    usage: dict[str, _SectionUsage] = {}
    for block in blocks:
        try:
            result = render_block(block, repo_root, config, deps)
        except TreedocError as exc:
            failures.append(Issue(block.start_line, str(exc)))
            section = resolve_notes(config, block.annotation_token).selected_section
            if section is not None:
                usage.setdefault(section, _SectionUsage(block.start_line)).complete = False
            continue
        if result.selected_section is not None:
            entry = usage.setdefault(result.selected_section, _SectionUsage(block.start_line))
            entry.used.update(result.used_annotation_keys)
        rendered.append((block, result))
    return rendered, failures, usage


def _unused_issues(
    config: AnnotationConfig | None, usage: dict[str, _SectionUsage]
) -> list[Issue]:
    if config is None:
        return []
    source = f" of {config.source_path}" if config.source_path is not None else ""
    issues: list[Issue] = []
    for section, entry in usage.items():
        if not entry.complete:
            continue
        notes = config.section(section) or {}
        for key in sorted(set(notes) - entry.used):
            issues.append(
                Issue(
                    entry.first_line,
                    f"annotation key {key!r} in section {section!r}{source} "
                    "did not match any listed path",
                )
            )
    return issues


def analyze_document(
    text: str,
    *,
    repo_root: Path,
    config: AnnotationConfig | None,
    deps: ListingDeps | None = None,
) -> DocumentReport:
    scan = scan_document(text)
    rendered, failures, usage = _render_all(
        scan.blocks, repo_root=repo_root, config=config, deps=deps or default_deps()
    )
    sync_issues: list[Issue] = []
    selector_issues: list[Issue] = []
    for block, result in rendered:
        if result.selector_issue is not None:
            selector_issues.append(Issue(block.start_line, result.selector_issue))
        if result.body_text == block.body_text:
            continue
        paths = diff_block(block, result.body_text)
        sync_issues.append(
            Issue(block.start_line, format_drift_detail(paths), tuple(paths))
        )
    return DocumentReport(
        parser_issues=[*scan.issues, *failures],
        sync_issues=sync_issues,
        selector_issues=selector_issues,
        unused_annotation_issues=_unused_issues(config, usage),
    )


def _replacement_lines(block: CommandBlock, body_text: str) -> list[str]:
    if not body_text:
        return []
    return [block.indent + line if line else line for line in body_text.split("\n")]


def fix_document(
    text: str,
    *,
    repo_root: Path,
    config: AnnotationConfig | None,
    deps: ListingDeps | None = None,
) -> FixResult:
    """Rewrite every drifted block; all edits are computed before any is applied."""
    normalized = normalize_newlines(text)
    scan = scan_document(normalized)
    rendered, failures, _ = _render_all(
        scan.blocks, repo_root=repo_root, config=config, deps=deps or default_deps()
    )
    edits = [
        (block.open_line_index + 1, block.close_line_index, _replacement_lines(block, result.body_text))
        for block, result in rendered
        if result.body_text != block.body_text
    ]
    lines = normalized.split("\n")
    for start, end, replacement in sorted(edits, key=lambda edit: edit[0], reverse=True):
        lines[start:end] = replacement
    return FixResult(text="\n".join(lines), issues=[*scan.issues, *failures])


def process_document(
    text: str,
    *,
    document_path: Path,
    settings: Settings,
    mode: Mode,
    deps: ListingDeps | None = None,
) -> DocumentOutcome:
    try:
        config = resolve_annotation_config(document_path, settings)
    except MalformedConfig as exc:
        issue = Issue(1, f"could not load annotations: {exc}")
        if mode is Mode.FIX:
            return DocumentOutcome(
                mode=mode, fix=FixResult(text=normalize_newlines(text), issues=[issue])
            )
        return DocumentOutcome(mode=mode, report=DocumentReport(parser_issues=[issue]))
    if mode is Mode.FIX:
        return DocumentOutcome(
            mode=mode,
            fix=fix_document(text, repo_root=settings.repo_root, config=config, deps=deps),
        )
    report = analyze_document(text, repo_root=settings.repo_root, config=config, deps=deps)
    if not settings.report_selectors:
        report = replace(report, selector_issues=[])
    if not settings.report_unused:
        report = replace(report, unused_annotation_issues=[])
    return DocumentOutcome(mode=mode, report=report)
