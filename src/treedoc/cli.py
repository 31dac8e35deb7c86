from __future__ import annotations

import json
import os
from pathlib import Path
import tempfile
from typing import Callable, List, Mapping, Optional

from click.core import ParameterSource
import typer

from treedoc.check import DocumentOutcome, Mode, process_document
from treedoc.config import Settings, find_repo_root, load_settings
from treedoc.schema import DocumentReportDTO, ReportDTO
from treedoc.tree_output import ListingDeps, default_deps

app = typer.Typer(add_completion=False, help="Keep `tree` listings in Markdown in sync.")


def _context_listing_deps(ctx: typer.Context) -> ListingDeps:
    obj = ctx.obj
    if isinstance(obj, Mapping):
        candidate = obj.get("listing_deps")
        if isinstance(candidate, ListingDeps):
            return candidate
    return default_deps()


def _param_is_command_line(ctx: typer.Context, param: str) -> bool:
    return ctx.get_parameter_source(param) is ParameterSource.COMMANDLINE


def _settings_factory(
    *,
    root: Optional[Path],
    config: Optional[Path],
    annotations: Optional[Path],
    report_unused: Optional[bool],
) -> Callable[[Path], Settings]:
    """Settings per document; without --root the repo root is found from the document."""
    annotations_path = annotations.resolve() if annotations is not None else None

    def _for(path: Path) -> Settings:
        repo_root = root.resolve() if root is not None else find_repo_root(path)
        return load_settings(
            repo_root,
            config_path=config,
            annotations=annotations_path,
            report_unused=report_unused,
        )

    return _for


def _display_path(path: Path, repo_root: Path) -> str:
    try:
        return path.resolve().relative_to(repo_root).as_posix()
    except ValueError:
        return str(path)


def _write_atomic(path: Path, text: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _echo_outcome(display: str, outcome: DocumentOutcome) -> int:
    count = 0
    if outcome.report is not None:
        for category, issue in outcome.report.categorized():
            typer.echo(f"{display}:{issue.line_number}: {category}: {issue.detail}")
            count += 1
    elif outcome.fix is not None:
        for issue in outcome.fix.issues:
            typer.echo(f"{display}:{issue.line_number}: parser: {issue.detail}", err=True)
            count += 1
    return count


def _run(
    ctx: typer.Context,
    *,
    paths: List[Path],
    mode: Mode,
    settings_for: Callable[[Path], Settings],
    emit_json: bool,
) -> int:
    deps = _context_listing_deps(ctx)
    documents: list[DocumentReportDTO] = []
    issue_count = 0
    for path in paths:
        settings = settings_for(path)
        display = _display_path(path, settings.repo_root)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            typer.echo(f"{display}: cannot read: {exc.strerror or exc}", err=True)
            return 2
        outcome = process_document(
            text, document_path=path.resolve(), settings=settings, mode=mode, deps=deps
        )
        rewritten = False
        if outcome.fix is not None and outcome.fix.changed_from(text):
            _write_atomic(path, outcome.fix.text)
            rewritten = True
            if not emit_json:
                typer.echo(f"Rewrote {display}")
        if emit_json:
            dto = DocumentReportDTO.from_outcome(display, outcome, rewritten=rewritten)
            issue_count += sum(
                len(group)
                for group in (
                    dto.parser_issues,
                    dto.sync_issues,
                    dto.selector_issues,
                    dto.unused_annotation_issues,
                )
            )
            documents.append(dto)
        else:
            issue_count += _echo_outcome(display, outcome)
    if emit_json:
        payload = ReportDTO(documents=documents, issue_count=issue_count)
        typer.echo(json.dumps(payload.model_dump(), indent=2, sort_keys=True))
    return 1 if issue_count else 0


_PATHS_ARGUMENT = typer.Argument(..., exists=True, dir_okay=False, help="Markdown files.")
_ROOT_OPTION = typer.Option(
    None, "--root", help="Repository root (default: nearest directory with .git)."
)
_CONFIG_OPTION = typer.Option(None, "--config", help="Path to treedoc.toml.")
_ANNOTATIONS_OPTION = typer.Option(
    None, "--annotations", help="Annotation file (default: discovered upward)."
)


@app.command("check")
def check(
    ctx: typer.Context,
    paths: List[Path] = _PATHS_ARGUMENT,
    root: Optional[Path] = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    annotations: Optional[Path] = _ANNOTATIONS_OPTION,
    report_unused: bool = typer.Option(
        True,
        "--report-unused/--no-report-unused",
        help="Report annotation keys that match no listed path.",
    ),
    emit_json: bool = typer.Option(False, "--json", help="Emit a JSON report."),
) -> None:
    """Report tree blocks whose listing no longer matches the filesystem."""
    settings_for = _settings_factory(
        root=root,
        config=config,
        annotations=annotations,
        report_unused=report_unused if _param_is_command_line(ctx, "report_unused") else None,
    )
    exit_code = _run(
        ctx, paths=paths, mode=Mode.CHECK, settings_for=settings_for, emit_json=emit_json
    )
    raise typer.Exit(code=exit_code)


@app.command("fix")
def fix(
    ctx: typer.Context,
    paths: List[Path] = _PATHS_ARGUMENT,
    root: Optional[Path] = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    annotations: Optional[Path] = _ANNOTATIONS_OPTION,
    emit_json: bool = typer.Option(False, "--json", help="Emit a JSON report."),
) -> None:
    """Rewrite drifted tree blocks in place."""
    settings_for = _settings_factory(
        root=root, config=config, annotations=annotations, report_unused=None
    )
    exit_code = _run(
        ctx, paths=paths, mode=Mode.FIX, settings_for=settings_for, emit_json=emit_json
    )
    raise typer.Exit(code=exit_code)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
