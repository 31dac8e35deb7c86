from __future__ import annotations

from treedoc.exceptions import MultiplePathsUnsupported
from treedoc.scanner import CommandBlock
from treedoc.tree_output import listing_root_argument, normalize_root_path, tree_line_paths

OUT_OF_SYNC_KEY = "out_of_sync_paths"


def qualify_path(root: str, relative_path: str) -> str:
    if relative_path == ".":
        return root
    if root == ".":
        return relative_path
    return f"{root}/{relative_path}"


def diff_block(block: CommandBlock, rendered_body: str) -> list[str]:
    """Return the filesystem paths implicated by lines that differ.

    Paths keep first-seen order: per differing line, the expected side comes
    before the stored side. An empty result means the differing lines could
    not be attributed to any entry; it does not mean the bodies match.
    """
    try:
        root = normalize_root_path(listing_root_argument(block.command_args))
    except MultiplePathsUnsupported:
        return []
    expected = rendered_body.split("\n")
    actual = block.body_lines
    expected_paths = tree_line_paths(expected)
    actual_paths = tree_line_paths(actual)
    seen: dict[str, None] = {}
    for index in range(max(len(expected), len(actual))):
        expected_line = expected[index] if index < len(expected) else None
        actual_line = actual[index] if index < len(actual) else None
        if expected_line == actual_line:
            continue
        for paths in (expected_paths, actual_paths):
            path = paths[index] if index < len(paths) else None
            if path is not None:
                seen.setdefault(qualify_path(root, path), None)
    return list(seen)


def format_drift_detail(paths: list[str]) -> str:
    detail = "tree block is out of sync with the filesystem"
    if not paths:
        return detail + " (changed lines do not map to listed paths)"
    return f"{detail}; {OUT_OF_SYNC_KEY}={','.join(paths)}"
