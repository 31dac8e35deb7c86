from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

DEFAULT_CONFIG_NAME = "treedoc.toml"
VCS_MARKER = ".git"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


@dataclass(frozen=True)
class Settings:
    repo_root: Path
    annotations: Path | None = None
    report_unused: bool = True
    report_selectors: bool = True


def find_repo_root(start: Path | None = None) -> Path:
    """Closest ancestor of ``start`` holding a ``.git`` entry, else the cwd."""
    base = (start or Path.cwd()).resolve()
    if base.is_file():
        base = base.parent
    for candidate in (base, *base.parents):
        if (candidate / VCS_MARKER).exists():
            return candidate
    return Path.cwd().resolve()


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def treedoc_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("treedoc", {})
    return section if isinstance(section, dict) else {}


def _as_bool(value: TomlValue, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return default


def load_settings(
    repo_root: Path,
    *,
    config_path: Path | None = None,
    annotations: Path | None = None,
    report_unused: bool | None = None,
) -> Settings:
    """Merge ``[treedoc]`` from ``treedoc.toml`` with explicit overrides."""
    section = treedoc_defaults(root=repo_root, config_path=config_path)
    configured = section.get("annotations")
    annotations_path = annotations
    if annotations_path is None and isinstance(configured, str) and configured.strip():
        annotations_path = repo_root / configured.strip()
    return Settings(
        repo_root=repo_root,
        annotations=annotations_path,
        report_unused=(
            report_unused
            if report_unused is not None
            else _as_bool(section.get("report_unused"), True)
        ),
        report_selectors=_as_bool(section.get("report_selectors"), True),
    )
