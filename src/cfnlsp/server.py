from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator

from lsprotocol.types import (
    INITIALIZED,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    WORKSPACE_DID_CHANGE_CONFIGURATION,
    Diagnostic,
    DidChangeConfigurationParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DidSaveTextDocumentParams,
    InitializedParams,
    LogMessageParams,
    MessageType,
    PublishDiagnosticsParams,
)
from pygls.lsp.server import LanguageServer

from cfnlsp import __version__
from cfnlsp.config import load_validation_settings
from cfnlsp.exceptions import SettingsError
from cfnlsp.session import TrackedDocument, ValidationSession
from cfnlsp.settings import ValidationSettings

logger = logging.getLogger(__name__)


class EditorClient:
    """Routes session output to the connected editor."""

    def __init__(self, ls: LanguageServer) -> None:
        self._ls = ls

    def publish(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        self._ls.text_document_publish_diagnostics(
            PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
        )

    def log(self, message: str) -> None:
        logger.info(message)
        self._ls.window_log_message(LogMessageParams(type=MessageType.Log, message=message))


class CfnLintLanguageServer(LanguageServer):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.session = ValidationSession(EditorClient(self))


server = CfnLintLanguageServer("cfnlsp", __version__)


def workspace_settings(root: str | Path | None) -> ValidationSettings:
    """Initial settings from ``cfnlsp.toml`` at the workspace root."""
    try:
        return load_validation_settings(Path(root) if root else None)
    except SettingsError as exc:
        logger.warning("Ignoring workspace cfn-lint defaults: %s", exc)
        return ValidationSettings()


def _tracked(ls: CfnLintLanguageServer, uri: str) -> TrackedDocument:
    document = ls.workspace.get_text_document(uri)
    return TrackedDocument(uri=document.uri, text=document.source, path=document.path)


def _tracked_documents(ls: CfnLintLanguageServer) -> Iterator[TrackedDocument]:
    for uri in list(ls.workspace.text_documents):
        yield _tracked(ls, uri)


async def _validate_uri(ls: CfnLintLanguageServer, uri: str) -> None:
    document = _tracked(ls, uri)
    await ls.session.validate(document.uri, document.text, document.path)


@server.feature(INITIALIZED)
def initialized(ls: CfnLintLanguageServer, params: InitializedParams) -> None:
    root = ls.workspace.root_path
    ls.session.workspace_root = root
    ls.session.update_settings(workspace_settings(root))


@server.feature(TEXT_DOCUMENT_DID_OPEN)
async def did_open(ls: CfnLintLanguageServer, params: DidOpenTextDocumentParams) -> None:
    await _validate_uri(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_SAVE)
async def did_save(ls: CfnLintLanguageServer, params: DidSaveTextDocumentParams) -> None:
    await _validate_uri(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: CfnLintLanguageServer, params: DidCloseTextDocumentParams) -> None:
    ls.session.forget(params.text_document.uri)


@server.feature(WORKSPACE_DID_CHANGE_CONFIGURATION)
async def did_change_configuration(
    ls: CfnLintLanguageServer, params: DidChangeConfigurationParams
) -> None:
    ls.session.client.log("Settings have been updated")
    try:
        settings = ValidationSettings.from_payload(params.settings)
    except SettingsError as exc:
        ls.session.client.log(f"Keeping previous settings: {exc}")
        return
    ls.session.update_settings(settings)
    await ls.session.revalidate(_tracked_documents(ls))


def start(start_fn: Callable[[], None] | None = None) -> None:
    """Start the language server over stdio."""
    (start_fn or server.start_io)()


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
