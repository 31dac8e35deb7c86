from __future__ import annotations

from pathlib import Path

import pytest

from treedoc.annotations import DEFAULT_SECTION, parse_annotation_config
from treedoc.exceptions import CommandFailed, MultiplePathsUnsupported
from treedoc.render import NOTE_GUTTER, note_key_for_row, render_block, render_rows, resolve_notes
from treedoc.scanner import scan_document
from treedoc.tree_output import TreeRow

DEMO_OUTPUT = "demo\n└── file.txt\n\n1 directory, 1 file\n"


def _block(info: str, body: str = ""):
    text = f"```{info}\n{body}\n```\n" if body else f"```{info}\n```\n"
    return scan_document(text).blocks[0]


def test_resolve_notes_without_config() -> None:
    assert resolve_notes(None, None).notes == {}
    assert resolve_notes(None, None).selector_issue is None
    selection = resolve_notes(None, "guide")
    assert selection.notes == {}
    assert "no annotation config file was discovered" in selection.selector_issue


def test_resolve_notes_with_config() -> None:
    config = parse_annotation_config(
        "default:\n  a: default note\nguide:\n  b: guide note\n", source_path="notes.yml"
    )
    default = resolve_notes(config, None)
    assert default.notes == {"a": "default note"}
    assert default.selector_issue is None
    assert default.selected_section == DEFAULT_SECTION

    guide = resolve_notes(config, "guide")
    assert guide.notes == {"b": "guide note"}
    assert guide.selected_section == "guide"

    unknown = resolve_notes(config, "Guide")
    assert unknown.notes == {"a": "default note"}
    assert "did not match any configured section" in unknown.selector_issue
    assert "notes.yml" in unknown.selector_issue


def test_note_key_precedence() -> None:
    notes = {"pkg/": "dir key", "pkg": "bare key", "mod.py": "file", ".": "root"}
    assert note_key_for_row(TreeRow("pkg", "pkg", True), notes) == "pkg/"
    assert note_key_for_row(TreeRow("pkg", "pkg", False), notes) == "pkg"
    assert note_key_for_row(TreeRow("mod.py/", "mod.py", True), {"mod.py": "x"}) == "mod.py"
    assert note_key_for_row(TreeRow("mod.py", "mod.py", False), {"mod.py/": "x"}) is None
    assert note_key_for_row(TreeRow("demo", ".", True), notes) == "."
    assert note_key_for_row(TreeRow("demo", ".", True), {"./": "x", "demo": "y"}) is None
    assert note_key_for_row(TreeRow("footer", None, False), notes) is None


def test_render_rows_aligns_notes_on_one_column() -> None:
    rows = [
        TreeRow("demo", ".", True),
        TreeRow("├── a.txt", "a.txt", False),
        TreeRow("└── longer-name.txt", "longer-name.txt", False),
    ]
    body, used = render_rows(rows, {"a.txt": "First", "longer-name.txt": "Second"})
    width = len("└── longer-name.txt") + NOTE_GUTTER
    assert body.split("\n") == [
        "demo",
        "├── a.txt".ljust(width) + "# First",
        "└── longer-name.txt".ljust(width) + "# Second",
    ]
    assert used == {"a.txt", "longer-name.txt"}


def test_render_block_annotates_demo_file(demo_repo: Path, fake_listing) -> None:
    deps, fake = fake_listing({("demo",): DEMO_OUTPUT})
    config = parse_annotation_config("default:\n  file.txt: File note\n")
    result = render_block(_block("sh tree demo"), demo_repo, config, deps)
    width = len("1 directory, 1 file") + NOTE_GUTTER
    assert result.body_text.split("\n") == [
        "demo",
        "└── file.txt".ljust(width) + "# File note",
        "",
        "1 directory, 1 file",
    ]
    assert result.unused_annotation_keys == ()
    assert result.used_annotation_keys == frozenset({"file.txt"})
    assert fake.calls[0][0] == ["tree", "demo"]
    assert fake.calls[0][1]["cwd"] == str(demo_repo)


def test_render_block_reports_unused_keys_sorted(demo_repo: Path, fake_listing) -> None:
    (demo_repo / "demo" / "file.txt").rename(demo_repo / "demo" / "sample.txt")
    deps, _ = fake_listing({("demo",): "demo\n└── sample.txt\n"})
    config = parse_annotation_config(
        "default:\n  sample.txt: Sample\n  missing.txt: Gone\n  another.txt: Also gone\n"
    )
    result = render_block(_block("sh tree demo"), demo_repo, config, deps)
    assert result.unused_annotation_keys == ("another.txt", "missing.txt")
    assert result.body_text.endswith("# Sample")


def test_render_block_without_notes_is_verbatim(demo_repo: Path, fake_listing) -> None:
    deps, _ = fake_listing({("demo",): DEMO_OUTPUT.replace("\n", "\r\n")})
    result = render_block(_block("sh tree demo"), demo_repo, None, deps)
    assert result.body_text == DEMO_OUTPUT.rstrip("\n")
    assert result.selector_issue is None
    assert result.unused_annotation_keys == ()


def test_render_block_selector_fallback(demo_repo: Path, fake_listing) -> None:
    deps, _ = fake_listing({("demo",): DEMO_OUTPUT})
    config = parse_annotation_config("default:\n  file.txt: Default note\n")
    result = render_block(_block("sh tree demo {nope}"), demo_repo, config, deps)
    assert "did not match any configured section" in result.selector_issue
    assert "# Default note" in result.body_text


def test_render_block_directory_key_uses_stat(demo_repo: Path, fake_listing) -> None:
    (demo_repo / "demo" / "sub").mkdir()
    deps, _ = fake_listing({(): ".\n├── .git\n└── demo\n    ├── file.txt\n    └── sub\n"})
    config = parse_annotation_config("default:\n  demo/sub/: Nested dir\n  demo/file.txt/: Not a dir\n")
    result = render_block(_block("sh tree"), demo_repo, config, deps)
    lines = result.body_text.split("\n")
    assert lines[-1].endswith("# Nested dir")
    assert result.unused_annotation_keys == ("demo/file.txt/",)


def test_render_block_multiple_paths_with_notes(demo_repo: Path, fake_listing) -> None:
    deps, _ = fake_listing({("demo", "other"): "demo\nother\n"})
    config = parse_annotation_config("default:\n  file.txt: note\n")
    with pytest.raises(MultiplePathsUnsupported):
        render_block(_block("sh tree demo other"), demo_repo, config, deps)
    assert render_block(_block("sh tree demo other"), demo_repo, None, deps).body_text == "demo\nother"


def test_render_block_command_failure(demo_repo: Path, fake_listing) -> None:
    deps, _ = fake_listing({}, returncode=2, stderr="boom")
    with pytest.raises(CommandFailed) as excinfo:
        render_block(_block("sh tree missing"), demo_repo, None, deps)
    assert "boom" in str(excinfo.value)
