from __future__ import annotations

import json
from typing import List, Optional

from lsprotocol.types import Diagnostic, DiagnosticSeverity, Position, Range
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from cfnlsp.exceptions import FindingPayloadError

SOURCE = "cfn-lint"
MESSAGE_TAG = "[cfn-lint] "
# LSP positions are uintegers; clients clamp to the end of the line.
MAX_CHARACTER = 2**31 - 1

_SEVERITY_BY_LEVEL = {
    "Warning": DiagnosticSeverity.Warning,
    "Informational": DiagnosticSeverity.Information,
    "Hint": DiagnosticSeverity.Hint,
}


class FindingPosition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    line: int = Field(alias="LineNumber")
    column: int = Field(alias="ColumnNumber")


class FindingLocation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    start: FindingPosition = Field(alias="Start")
    end: FindingPosition = Field(alias="End")


class FindingRule(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(alias="Id")


class FindingRecord(BaseModel):
    """One entry of ``cfn-lint --format json`` output (1-based, inclusive)."""

    model_config = ConfigDict(extra="ignore")

    location: FindingLocation = Field(alias="Location")
    level: str = Field("", alias="Level")
    rule: FindingRule = Field(alias="Rule")
    message: str = Field("", alias="Message")
    filename: Optional[str] = Field(None, alias="Filename")


_RECORDS = TypeAdapter(List[FindingRecord])


def severity_for_level(level: str) -> DiagnosticSeverity:
    return _SEVERITY_BY_LEVEL.get(level, DiagnosticSeverity.Error)


def _position(point: FindingPosition) -> Position:
    return Position(line=max(point.line - 1, 0), character=max(point.column - 1, 0))


def synthetic_diagnostic(
    text: str, severity: DiagnosticSeverity = DiagnosticSeverity.Error
) -> Diagnostic:
    """Diagnostic spanning all of line 0, used for every non-finding outcome."""
    return Diagnostic(
        range=Range(
            start=Position(line=0, character=0),
            end=Position(line=0, character=MAX_CHARACTER),
        ),
        severity=severity,
        message=MESSAGE_TAG + text,
        source=SOURCE,
    )


def diagnostic_for_finding(record: FindingRecord) -> Diagnostic:
    return Diagnostic(
        range=Range(
            start=_position(record.location.start),
            end=_position(record.location.end),
        ),
        severity=severity_for_level(record.level),
        message=f"{MESSAGE_TAG}{record.rule.id}:{record.message}",
        source=SOURCE,
        code=record.rule.id,
    )


def decode_findings(payload: str) -> list[FindingRecord]:
    try:
        raw = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise FindingPayloadError(f"cfn-lint output is not valid JSON: {exc}") from exc
    except RecursionError as exc:
        raise FindingPayloadError(f"cfn-lint output is nested too deeply: {exc}") from exc
    if not isinstance(raw, list):
        raise FindingPayloadError(
            f"cfn-lint output must be a JSON array, got {type(raw).__name__}"
        )
    try:
        return _RECORDS.validate_python(raw)
    except ValidationError as exc:
        raise FindingPayloadError(f"Unexpected cfn-lint finding record: {exc}") from exc


def parse_findings(payload: str) -> list[Diagnostic]:
    """Map cfn-lint JSON output to diagnostics.

    ``[]`` means no findings. A payload that cannot be decoded becomes a
    single Error diagnostic carrying the decode error; this never raises.
    """
    try:
        records = decode_findings(payload)
    except FindingPayloadError as exc:
        return [synthetic_diagnostic(str(exc))]
    return [diagnostic_for_finding(record) for record in records]
