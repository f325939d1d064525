from __future__ import annotations

import shlex
import sys
import textwrap
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))


import pytest
from lsprotocol.types import Diagnostic

YAML_TEMPLATE = textwrap.dedent(
    """\
    AWSTemplateFormatVersion: '2010-09-09'
    Resources:
      Bucket:
        Type: AWS::S3::Bucket
    """
)


class RecordingClient:
    def __init__(self) -> None:
        self.published: list[tuple[str, list[Diagnostic]]] = []
        self.logs: list[str] = []

    def publish(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        self.published.append((uri, diagnostics))

    def log(self, message: str) -> None:
        self.logs.append(message)


@pytest.fixture
def client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def template_text() -> str:
    return YAML_TEMPLATE


@pytest.fixture
def fake_cfn_lint(tmp_path: Path):
    """Write a stand-in validator script and return an executable setting for it.

    The script echoes its argv to ``argv.json`` next to itself, writes
    ``stderr`` to stderr, prints ``stdout`` and exits with ``exit_code``.
    """

    def _make(stdout: str = "[]", stderr: str = "", exit_code: int = 0) -> str:
        script = tmp_path / "fake_cfn_lint.py"
        script.write_text(
            "import json, sys\n"
            "from pathlib import Path\n"
            "Path(__file__).with_name('argv.json').write_text(json.dumps(sys.argv[1:]))\n"
            f"sys.stderr.write({stderr!r})\n"
            "sys.stderr.flush()\n"
            f"sys.stdout.write({stdout!r})\n"
            "sys.stdout.flush()\n"
            f"sys.exit({exit_code})\n",
            encoding="utf-8",
        )
        return f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"

    return _make
