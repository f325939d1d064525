from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol

from lsprotocol.types import Diagnostic, DiagnosticSeverity

from cfnlsp.detector import detection_reason
from cfnlsp.findings import parse_findings, synthetic_diagnostic
from cfnlsp.runner import ProcessOutcome, Runner, run_process
from cfnlsp.settings import ValidationSettings, command_line

logger = logging.getLogger(__name__)

SPAWN_FAILURE_MESSAGE = "Unable to start cfn-lint ({reason}). Is cfn-lint installed correctly?"
EMPTY_OUTPUT_MESSAGE = "cfn-lint produced no output (exit code {code}, signal {signal})"
NOT_A_TEMPLATE_MESSAGE = (
    "Not validating {uri}: it does not look like a CloudFormation template. "
    "If it is one, add AWSTemplateFormatVersion: '2010-09-09' (YAML) or "
    '"AWSTemplateFormatVersion": "2010-09-09" (JSON) at the root of the document.'
)


class SessionClient(Protocol):
    """Editor-side collaborator: receives diagnostics and status text."""

    def publish(self, uri: str, diagnostics: list[Diagnostic]) -> None: ...

    def log(self, message: str) -> None: ...


@dataclass(frozen=True)
class TrackedDocument:
    uri: str
    text: str
    path: str


def diagnostics_for_outcome(outcome: ProcessOutcome) -> list[Diagnostic]:
    """Merge every channel of a finished run into one diagnostic list.

    Order: spawn failure (which excludes everything else), stderr warnings in
    arrival order, then the parsed stdout findings.
    """
    if not outcome.spawned:
        return [synthetic_diagnostic(SPAWN_FAILURE_MESSAGE.format(reason=outcome.spawn_error))]
    diagnostics = [
        synthetic_diagnostic(chunk, DiagnosticSeverity.Warning)
        for chunk in outcome.stderr_chunks
    ]
    if outcome.stdout.strip():
        diagnostics.extend(parse_findings(outcome.stdout))
    else:
        diagnostics.append(
            synthetic_diagnostic(
                EMPTY_OUTPUT_MESSAGE.format(code=outcome.exit_code, signal=outcome.signal)
            )
        )
    return diagnostics


class ValidationSession:
    """Per-server validation state.

    Owns the current settings and the in-flight map. A URI is present in
    ``in_flight`` only while a cfn-lint run for it is outstanding; a trigger
    for such a URI is dropped, not queued.
    """

    def __init__(
        self,
        client: SessionClient,
        *,
        settings: ValidationSettings | None = None,
        workspace_root: str | Path | None = None,
        runner: Runner = run_process,
    ) -> None:
        self.client = client
        self.settings = settings if settings is not None else ValidationSettings()
        self.workspace_root = workspace_root
        self.in_flight: dict[str, bool] = {}
        self._runner = runner
        self._published: set[str] = set()

    def is_validating(self, uri: str) -> bool:
        return self.in_flight.get(uri, False)

    def update_settings(self, settings: ValidationSettings) -> None:
        self.settings = settings

    async def validate(self, uri: str, text: str, path: str) -> list[Diagnostic] | None:
        """Validate one document and publish the result.

        Returns the published diagnostics, or None when the trigger was
        dropped or the document is not a template.
        """
        if self.in_flight.get(uri):
            self.client.log(f"Already validating template: {uri}")
            return None
        reason = detection_reason(text)
        if reason is None:
            self.client.log(NOT_A_TEMPLATE_MESSAGE.format(uri=uri))
            self._clear(uri)
            return None
        self.client.log(f"Determined {uri} is a CloudFormation template ({reason} match)")

        # Set before the first await so a concurrent trigger sees it.
        self.in_flight[uri] = True
        try:
            diagnostics = await self._run(uri, path)
            self._publish(uri, diagnostics)
            return diagnostics
        finally:
            self.in_flight.pop(uri, None)

    async def revalidate(self, documents: Iterable[TrackedDocument]) -> None:
        await asyncio.gather(
            *(self.validate(doc.uri, doc.text, doc.path) for doc in documents)
        )

    def forget(self, uri: str) -> None:
        self._clear(uri)

    async def _run(self, uri: str, path: str) -> list[Diagnostic]:
        settings = self.settings
        try:
            command = settings.command(path)
        except ValueError as exc:
            message = SPAWN_FAILURE_MESSAGE.format(reason=exc)
            self.client.log(message)
            return [synthetic_diagnostic(message)]
        self.client.log(f"Running {command_line(command)}")
        try:
            outcome = await self._runner(
                command,
                cwd=self.workspace_root,
                on_stderr=self.client.log,
            )
            if not outcome.spawned:
                self.client.log(SPAWN_FAILURE_MESSAGE.format(reason=outcome.spawn_error))
            else:
                self.client.log(
                    f"cfn-lint exited with code {outcome.exit_code} and signal {outcome.signal}"
                )
            return diagnostics_for_outcome(outcome)
        except Exception as exc:
            logger.exception("cfn-lint run for %s failed", uri)
            return [synthetic_diagnostic(f"Validation failed: {exc}")]

    def _publish(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        self.client.publish(uri, diagnostics)
        if diagnostics:
            self._published.add(uri)
        else:
            self._published.discard(uri)

    def _clear(self, uri: str) -> None:
        if uri in self._published:
            self._publish(uri, [])
