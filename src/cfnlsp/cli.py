from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer
from lsprotocol.types import Diagnostic, DiagnosticSeverity

from cfnlsp import server as lsp_server
from cfnlsp.config import load_validation_settings
from cfnlsp.exceptions import SettingsError
from cfnlsp.session import ValidationSession
from cfnlsp.settings import ValidationSettings

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class CheckResult:
    path: Path
    diagnostics: list[Diagnostic] | None

    @property
    def skipped(self) -> bool:
        return self.diagnostics is None

    @property
    def has_errors(self) -> bool:
        return any(
            diag.severity == DiagnosticSeverity.Error for diag in self.diagnostics or []
        )


class _CollectingClient:
    """Keeps the last published diagnostics per URI."""

    def __init__(self) -> None:
        self.published: dict[str, list[Diagnostic]] = {}

    def publish(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        self.published[uri] = diagnostics

    def log(self, message: str) -> None:
        logger.debug(message)


def _configure_logging(level: str, log_file: Path | None) -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise typer.BadParameter(f"unknown log level: {level}", param_hint="--log-level")
    if log_file is not None:
        logging.basicConfig(filename=str(log_file), level=numeric, format=_LOG_FORMAT)
    else:
        logging.basicConfig(level=numeric, format=_LOG_FORMAT)


def _check_settings(
    *,
    config: Path | None,
    executable: str | None,
    ignore_checks: list[str] | None,
    append_rules: list[str] | None,
    override_spec: str | None,
) -> ValidationSettings:
    overrides: dict[str, object] = {}
    if executable is not None:
        overrides["executable_path"] = executable
    if ignore_checks:
        overrides["ignore_rules"] = list(ignore_checks)
    if append_rules:
        overrides["append_rules"] = list(append_rules)
    if override_spec is not None:
        overrides["override_spec_path"] = override_spec
    return load_validation_settings(config_path=config, overrides=overrides)


async def _check_paths(paths: list[Path], settings: ValidationSettings) -> list[CheckResult]:
    client = _CollectingClient()
    session = ValidationSession(client, settings=settings, workspace_root=Path.cwd())
    results: list[CheckResult] = []
    for path in paths:
        resolved = path.resolve()
        uri = resolved.as_uri()
        text = resolved.read_text(encoding="utf-8", errors="replace")
        await session.validate(uri, text, str(resolved))
        results.append(CheckResult(path=path, diagnostics=client.published.get(uri)))
    return results


def _diagnostic_payload(diag: Diagnostic) -> dict[str, object]:
    return {
        "range": {
            "start": {"line": diag.range.start.line, "character": diag.range.start.character},
            "end": {"line": diag.range.end.line, "character": diag.range.end.character},
        },
        "severity": DiagnosticSeverity(diag.severity).name if diag.severity else None,
        "code": diag.code,
        "message": diag.message,
    }


def _render_text(results: list[CheckResult]) -> str:
    lines: list[str] = []
    for result in results:
        if result.skipped:
            lines.append(f"{result.path}: skipped (not a CloudFormation template)")
            continue
        for diag in result.diagnostics or []:
            severity = DiagnosticSeverity(diag.severity).name if diag.severity else "Error"
            start = diag.range.start
            lines.append(
                f"{result.path}:{start.line + 1}:{start.character + 1}: "
                f"{severity}: {diag.message}"
            )
    return "\n".join(lines)


def _render_json(results: list[CheckResult]) -> str:
    payload = [
        {
            "path": str(result.path),
            "skipped": result.skipped,
            "diagnostics": [_diagnostic_payload(diag) for diag in result.diagnostics or []],
        }
        for result in results
    ]
    return json.dumps(payload, indent=2)


@app.command("serve")
def serve(
    tcp: bool = typer.Option(False, "--tcp", help="Listen on TCP instead of stdio."),
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(2087, "--port"),
    log_level: str = typer.Option("WARNING", "--log-level"),
    log_file: Optional[Path] = typer.Option(None, "--log-file"),
) -> None:
    """Run the cfn-lint language server."""
    _configure_logging(log_level, log_file)
    if tcp:
        lsp_server.server.start_tcp(host, port)
    else:
        lsp_server.start()


@app.command("check")
def check(
    paths: List[Path] = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    executable: Optional[str] = typer.Option(None, "--executable"),
    ignore_checks: Optional[List[str]] = typer.Option(None, "--ignore-checks"),
    append_rules: Optional[List[str]] = typer.Option(None, "--append-rules"),
    override_spec: Optional[str] = typer.Option(None, "--override-spec"),
    config: Optional[Path] = typer.Option(None, "--config"),
    output_format: str = typer.Option("text", "--format", help="text or json"),
) -> None:
    """Validate templates once, the way the server would, and print diagnostics."""
    if output_format not in {"text", "json"}:
        raise typer.BadParameter("expected 'text' or 'json'", param_hint="--format")
    try:
        settings = _check_settings(
            config=config,
            executable=executable,
            ignore_checks=ignore_checks,
            append_rules=append_rules,
            override_spec=override_spec,
        )
    except SettingsError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2)
    results = asyncio.run(_check_paths(list(paths), settings))
    rendered = _render_json(results) if output_format == "json" else _render_text(results)
    if rendered:
        typer.echo(rendered)
    raise typer.Exit(code=1 if any(result.has_errors for result in results) else 0)


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
