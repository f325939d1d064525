from __future__ import annotations

import shlex
from pathlib import Path
from typing import Mapping, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    field_validator,
)

from cfnlsp.exceptions import SettingsError

SETTINGS_SECTION = "cfnLint"
DEFAULT_EXECUTABLE = "cfn-lint"

FORMAT_FLAGS = ("--format", "json")
IGNORE_CHECKS_FLAG = "--ignore-checks"
APPEND_RULES_FLAG = "--append-rules"
OVERRIDE_SPEC_FLAG = "--override-spec"
END_OF_OPTIONS = "--"


def _normalize_rule_list(value: object) -> object:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    if isinstance(value, (list, tuple)):
        items: list[object] = []
        for item in value:
            if isinstance(item, str):
                if item.strip():
                    items.append(item.strip())
            else:
                items.append(item)
        return tuple(items)
    return value


class ValidationSettings(BaseModel):
    """Options for one cfn-lint invocation.

    Field values arrive either from the editor (camelCase keys under the
    ``cfnLint`` section) or from a workspace ``cfnlsp.toml`` (snake_case or
    camelCase). Instances are frozen; a configuration change replaces the
    whole object.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    executable_path: str = Field(
        DEFAULT_EXECUTABLE,
        validation_alias=AliasChoices("executable_path", "executablePath", "path"),
    )
    ignore_rules: Tuple[str, ...] = Field(
        (), validation_alias=AliasChoices("ignore_rules", "ignoreRules")
    )
    append_rules: Tuple[str, ...] = Field(
        (), validation_alias=AliasChoices("append_rules", "appendRules")
    )
    override_spec_path: str = Field(
        "", validation_alias=AliasChoices("override_spec_path", "overrideSpecPath")
    )

    _argv: Tuple[str, ...] = PrivateAttr(default=())

    @field_validator("executable_path", mode="before")
    @classmethod
    def _default_executable(cls, value: object) -> object:
        if value is None:
            return DEFAULT_EXECUTABLE
        if isinstance(value, str) and not value.strip():
            return DEFAULT_EXECUTABLE
        return value

    @field_validator("executable_path")
    @classmethod
    def _splittable_executable(cls, value: str) -> str:
        value = value.strip()
        if Path(value).is_file():
            return value
        try:
            argv = shlex.split(value)
        except ValueError as exc:
            raise ValueError(f"cannot split executable path {value!r}: {exc}") from exc
        if not argv:
            raise ValueError("executable path names no program")
        return value

    @field_validator("ignore_rules", "append_rules", mode="before")
    @classmethod
    def _rule_list(cls, value: object) -> object:
        return _normalize_rule_list(value)

    @field_validator("override_spec_path", mode="before")
    @classmethod
    def _optional_path(cls, value: object) -> object:
        if value is None:
            return ""
        return value.strip() if isinstance(value, str) else value

    @classmethod
    def from_mapping(cls, section: Mapping[str, object]) -> "ValidationSettings":
        try:
            return cls.model_validate(dict(section))
        except ValidationError as exc:
            raise SettingsError(f"Invalid cfn-lint settings: {exc}") from exc

    @classmethod
    def from_payload(cls, payload: object) -> "ValidationSettings":
        """Read the ``cfnLint`` section of a didChangeConfiguration payload.

        A payload without the section yields the defaults.
        """
        if payload is None:
            return cls()
        if not isinstance(payload, Mapping):
            raise SettingsError(
                f"Settings payload must be an object, got {type(payload).__name__}"
            )
        section = payload.get(SETTINGS_SECTION)
        if section is None:
            return cls()
        if not isinstance(section, Mapping):
            raise SettingsError(
                f"'{SETTINGS_SECTION}' settings must be an object, "
                f"got {type(section).__name__}"
            )
        return cls.from_mapping(section)

    def model_post_init(self, __context: object) -> None:
        # Resolved once per settings object, not per run.
        path = self.executable_path
        self._argv = (path,) if Path(path).is_file() else tuple(shlex.split(path))

    def executable_argv(self) -> list[str]:
        return list(self._argv)

    def arguments(self, file_path: str | Path) -> list[str]:
        args = list(FORMAT_FLAGS)
        for rule in self.ignore_rules:
            args.extend((IGNORE_CHECKS_FLAG, rule))
        for rule in self.append_rules:
            args.extend((APPEND_RULES_FLAG, rule))
        if self.override_spec_path:
            args.extend((OVERRIDE_SPEC_FLAG, self.override_spec_path))
        args.extend((END_OF_OPTIONS, str(Path(file_path).absolute())))
        return args

    def command(self, file_path: str | Path) -> list[str]:
        return [*self.executable_argv(), *self.arguments(file_path)]


def command_line(command: list[str]) -> str:
    return shlex.join(command)
