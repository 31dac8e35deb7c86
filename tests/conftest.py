from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import Callable

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))


import pytest

from treedoc.tree_output import ListingDeps


class FakeTree:
    """Stand-in for ``subprocess.run`` that answers ``tree`` invocations."""

    def __init__(self, outputs: dict[tuple[str, ...], str], *, returncode: int = 0, stderr: str = ""):
        self.outputs = outputs
        self.returncode = returncode
        self.stderr = stderr
        self.calls: list[tuple[list[str], dict[str, object]]] = []

    def __call__(self, argv: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        self.calls.append((list(argv), dict(kwargs)))
        stdout = self.outputs.get(tuple(argv[1:]), "")
        return subprocess.CompletedProcess(argv, self.returncode, stdout, self.stderr)


@pytest.fixture
def fake_listing() -> Callable[..., tuple[ListingDeps, FakeTree]]:
    def _make(
        outputs: dict[tuple[str, ...], str],
        *,
        returncode: int = 0,
        stderr: str = "",
    ) -> tuple[ListingDeps, FakeTree]:
        fake = FakeTree(outputs, returncode=returncode, stderr=stderr)
        return ListingDeps(run=fake, stat=os.stat), fake

    return _make


@pytest.fixture
def demo_repo(tmp_path: Path) -> Path:
    (tmp_path / ".git").mkdir()
    demo = tmp_path / "demo"
    demo.mkdir()
    (demo / "file.txt").write_text("hello\n", encoding="utf-8")
    return tmp_path
