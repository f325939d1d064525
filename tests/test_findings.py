from __future__ import annotations

import json

import pytest
from lsprotocol.types import DiagnosticSeverity

from cfnlsp.exceptions import FindingPayloadError
from cfnlsp.findings import (
    MAX_CHARACTER,
    SOURCE,
    decode_findings,
    parse_findings,
    severity_for_level,
    synthetic_diagnostic,
)


def _record(
    *,
    start: tuple[object, object] = ("5", "3"),
    end: tuple[object, object] = ("5", "10"),
    level: str = "Warning",
    rule: str = "E1234",
    message: str = "bad value",
) -> dict[str, object]:
    return {
        "Location": {
            "Start": {"LineNumber": start[0], "ColumnNumber": start[1]},
            "End": {"LineNumber": end[0], "ColumnNumber": end[1]},
        },
        "Level": level,
        "Rule": {"Id": rule},
        "Message": message,
    }


def test_single_finding_maps_positions_and_severity() -> None:
    diagnostics = parse_findings(json.dumps([_record()]))
    assert len(diagnostics) == 1
    diag = diagnostics[0]
    assert (diag.range.start.line, diag.range.start.character) == (4, 2)
    assert (diag.range.end.line, diag.range.end.character) == (4, 9)
    assert diag.severity == DiagnosticSeverity.Warning
    assert diag.message == "[cfn-lint] E1234:bad value"
    assert diag.source == SOURCE
    assert diag.code == "E1234"


def test_integer_positions_are_accepted() -> None:
    (diag,) = parse_findings(json.dumps([_record(start=(1, 1), end=(2, 7))]))
    assert (diag.range.start.line, diag.range.start.character) == (0, 0)
    assert (diag.range.end.line, diag.range.end.character) == (1, 6)


def test_empty_array_is_no_findings() -> None:
    assert parse_findings("[]") == []
    assert parse_findings("  [ ]\n") == []


def test_record_order_is_preserved() -> None:
    payload = json.dumps(
        [_record(rule="W1"), _record(rule="E2"), _record(rule="I3")]
    )
    assert [diag.code for diag in parse_findings(payload)] == ["W1", "E2", "I3"]


@pytest.mark.parametrize(
    ("level", "expected"),
    [
        ("Warning", DiagnosticSeverity.Warning),
        ("Informational", DiagnosticSeverity.Information),
        ("Hint", DiagnosticSeverity.Hint),
        ("Error", DiagnosticSeverity.Error),
        ("Critical", DiagnosticSeverity.Error),
        ("", DiagnosticSeverity.Error),
    ],
)
def test_severity_table(level: str, expected: DiagnosticSeverity) -> None:
    assert severity_for_level(level) == expected


def test_unknown_level_falls_back_to_error() -> None:
    (diag,) = parse_findings(json.dumps([_record(level="Critical")]))
    assert diag.severity == DiagnosticSeverity.Error


def test_zero_positions_are_clamped() -> None:
    (diag,) = parse_findings(json.dumps([_record(start=(0, 0), end=(0, 0))]))
    assert diag.range.start.line == 0
    assert diag.range.start.character == 0


def test_extra_keys_are_ignored() -> None:
    record = _record()
    record["Filename"] = "template.yaml"
    record["Rule"] = {"Id": "E1234", "Description": "d", "Source": "url"}
    (finding,) = decode_findings(json.dumps([record]))
    assert finding.filename == "template.yaml"
    assert finding.rule.id == "E1234"


@pytest.mark.parametrize(
    "payload",
    [
        "not json at all",
        "{\"Location\": 1}",
        "[{\"Level\": \"Warning\"}]",
        "[{\"Location\": {\"Start\": {\"LineNumber\": \"x\", \"ColumnNumber\": 1}}}]",
        "[1, 2]",
    ],
)
def test_malformed_payload_yields_one_synthetic_error(payload: str) -> None:
    diagnostics = parse_findings(payload)
    assert len(diagnostics) == 1
    diag = diagnostics[0]
    assert diag.severity == DiagnosticSeverity.Error
    assert diag.range.start.line == 0
    assert diag.range.start.character == 0
    assert diag.range.end.line == 0
    assert diag.range.end.character == MAX_CHARACTER
    assert diag.message.startswith("[cfn-lint] ")


@pytest.mark.parametrize("payload", ["{", "{}", "[{}]"])
def test_decode_findings_raises(payload: str) -> None:
    with pytest.raises(FindingPayloadError):
        decode_findings(payload)


def test_synthetic_diagnostic_severity() -> None:
    diag = synthetic_diagnostic("careful", DiagnosticSeverity.Warning)
    assert diag.severity == DiagnosticSeverity.Warning
    assert diag.message == "[cfn-lint] careful"
    assert diag.range.end.character == MAX_CHARACTER


def test_deeply_nested_payload_yields_one_synthetic_error() -> None:
    payload = "[" * 200_000 + "]" * 200_000
    with pytest.raises(FindingPayloadError, match="nested too deeply"):
        decode_findings(payload)
    diagnostics = parse_findings(payload)
    assert len(diagnostics) == 1
    assert diagnostics[0].severity == DiagnosticSeverity.Error
    assert diagnostics[0].range.end.character == MAX_CHARACTER
