"""Workspace defaults for cfn-lint runs, read from ``cfnlsp.toml``.

The file is optional. Its ``[cfn-lint]`` table takes the same keys as the
editor's ``cfnLint`` settings, in snake_case or camelCase::

    [cfn-lint]
    executable_path = "/usr/local/bin/cfn-lint"
    ignore_rules = ["W3005"]
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping
import tomllib

from cfnlsp.exceptions import SettingsError
from cfnlsp.settings import ValidationSettings

DEFAULT_CONFIG_NAME = "cfnlsp.toml"
VALIDATION_SECTION = "cfn-lint"

_FIELD_ALIASES = {
    "executable_path": ("executablePath", "path"),
    "ignore_rules": ("ignoreRules",),
    "append_rules": ("appendRules",),
    "override_spec_path": ("overrideSpecPath",),
}


def config_path_for(root: Path | None = None) -> Path:
    return (root if root is not None else Path.cwd()) / DEFAULT_CONFIG_NAME


def read_validation_section(path: Path) -> dict[str, object]:
    """Return the ``[cfn-lint]`` table of ``path``; a missing file is empty.

    Raises SettingsError when the file exists but cannot be used.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise SettingsError(f"Cannot read {path}: {exc}") from exc
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise SettingsError(f"Invalid TOML in {path}: {exc}") from exc
    section = data.get(VALIDATION_SECTION, {})
    if not isinstance(section, dict):
        raise SettingsError(f"[{VALIDATION_SECTION}] in {path} must be a table")
    return section


def _apply_overrides(
    section: Mapping[str, object], overrides: Mapping[str, object]
) -> dict[str, object]:
    merged = dict(section)
    for name, value in overrides.items():
        for alias in _FIELD_ALIASES.get(name, ()):
            merged.pop(alias, None)
        merged[name] = value
    return merged


def load_validation_settings(
    root: Path | None = None,
    config_path: Path | None = None,
    *,
    overrides: Mapping[str, object] | None = None,
) -> ValidationSettings:
    """Build settings from the workspace file with ``overrides`` on top.

    ``overrides`` uses the snake_case field names and replaces any spelling of
    the same key found in the file.
    """
    path = config_path if config_path is not None else config_path_for(root)
    section = read_validation_section(path)
    if overrides:
        section = _apply_overrides(section, overrides)
    try:
        return ValidationSettings.from_mapping(section)
    except SettingsError as exc:
        raise SettingsError(f"{path}: {exc}") from exc
