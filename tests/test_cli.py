from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from treedoc import cli

DEMO_OUTPUT = "demo\n└── file.txt\n"


def _invoke(args: list[str], deps) -> object:
    runner = CliRunner()
    return runner.invoke(cli.app, args, obj={"listing_deps": deps})


def _write_doc(repo: Path, body: list[str]) -> Path:
    doc = repo / "README.md"
    doc.write_text("\n".join(["# Demo", "```sh tree demo", *body, "```", ""]), encoding="utf-8")
    return doc


def test_cli_help_lists_commands() -> None:
    result = CliRunner().invoke(cli.app, ["--help"])
    assert result.exit_code == 0
    assert "check" in result.output
    assert "fix" in result.output


def test_check_reports_drift(demo_repo: Path, fake_listing) -> None:
    deps, _ = fake_listing({("demo",): DEMO_OUTPUT})
    doc = _write_doc(demo_repo, ["demo", "└── old.txt"])
    result = _invoke(["check", str(doc), "--root", str(demo_repo)], deps)
    assert result.exit_code == 1
    assert "README.md:2: sync:" in result.output
    assert "out_of_sync_paths=demo/file.txt,demo/old.txt" in result.output


def test_check_clean_document(demo_repo: Path, fake_listing) -> None:
    deps, _ = fake_listing({("demo",): DEMO_OUTPUT})
    doc = _write_doc(demo_repo, ["demo", "└── file.txt"])
    result = _invoke(["check", str(doc), "--root", str(demo_repo)], deps)
    assert result.exit_code == 0
    assert result.output == ""


def test_check_json_report(demo_repo: Path, fake_listing) -> None:
    deps, _ = fake_listing({("demo",): DEMO_OUTPUT})
    notes = demo_repo / "notes.yml"
    notes.write_text("default:\n  file.txt: File\n  gone.txt: Gone\n", encoding="utf-8")
    doc = _write_doc(demo_repo, ["demo", "└── file.txt"])
    result = _invoke(
        ["check", str(doc), "--root", str(demo_repo), "--annotations", str(notes), "--json"],
        deps,
    )
    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert payload["issue_count"] == 2
    document = payload["documents"][0]
    assert document["path"] == "README.md"
    assert document["mode"] == "check"
    assert document["sync_issues"][0]["out_of_sync_paths"] == ["demo/file.txt"]
    assert "'gone.txt'" in document["unused_annotation_issues"][0]["detail"]

    quiet = _invoke(
        [
            "check",
            str(doc),
            "--root",
            str(demo_repo),
            "--annotations",
            str(notes),
            "--no-report-unused",
            "--json",
        ],
        deps,
    )
    assert json.loads(quiet.output)["issue_count"] == 1


def test_fix_rewrites_document(demo_repo: Path, fake_listing) -> None:
    deps, _ = fake_listing({("demo",): DEMO_OUTPUT})
    doc = _write_doc(demo_repo, ["stale"])
    result = _invoke(["fix", str(doc), "--root", str(demo_repo)], deps)
    assert result.exit_code == 0
    assert "Rewrote README.md" in result.output
    assert doc.read_text(encoding="utf-8") == "# Demo\n```sh tree demo\ndemo\n└── file.txt\n```\n"

    again = _invoke(["fix", str(doc), "--root", str(demo_repo)], deps)
    assert again.exit_code == 0
    assert again.output == ""


def test_fix_reports_block_failures(demo_repo: Path, fake_listing) -> None:
    deps, _ = fake_listing({}, returncode=2, stderr="cannot open")
    doc = _write_doc(demo_repo, ["stale"])
    result = _invoke(["fix", str(doc), "--root", str(demo_repo)], deps)
    assert result.exit_code == 1
    assert "cannot open" in result.output
    assert "stale" in doc.read_text(encoding="utf-8")


def test_check_finds_repo_root_from_document(
    demo_repo: Path, fake_listing, tmp_path_factory, monkeypatch
) -> None:
    deps, fake = fake_listing({("demo",): DEMO_OUTPUT})
    doc = _write_doc(demo_repo, ["demo", "└── file.txt"])
    monkeypatch.chdir(tmp_path_factory.mktemp("elsewhere"))
    result = _invoke(["check", str(doc)], deps)
    assert result.exit_code == 0
    assert result.output == ""
    assert fake.calls[0][1]["cwd"] == str(demo_repo.resolve())


def test_report_unused_flag_overrides_config(demo_repo: Path, fake_listing) -> None:
    deps, _ = fake_listing({("demo",): DEMO_OUTPUT})
    (demo_repo / "treedoc.toml").write_text(
        "[treedoc]\nreport_unused = false\n", encoding="utf-8"
    )
    notes = demo_repo / "notes.yml"
    notes.write_text("default:\n  file.txt: File\n  gone.txt: Gone\n", encoding="utf-8")
    doc = _write_doc(demo_repo, ["demo", "└── file.txt  # File"])
    base = ["check", str(doc), "--root", str(demo_repo), "--annotations", str(notes)]

    from_config = _invoke(base, deps)
    assert from_config.exit_code == 0
    assert "gone.txt" not in from_config.output

    forced = _invoke([*base, "--report-unused"], deps)
    assert forced.exit_code == 1
    assert "'gone.txt'" in forced.output
