from __future__ import annotations

import asyncio
import codecs
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Sequence, TypeAlias

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ProcessOutcome:
    """Terminal outcome of one validator invocation.

    When ``spawn_error`` is set the process never started and every other
    channel is empty. Otherwise ``stdout`` holds the complete output and
    ``exit_code``/``signal`` describe how the process ended.
    """

    command: tuple[str, ...]
    spawn_error: str | None = None
    exit_code: int | None = None
    signal: int | None = None
    stdout: str = ""
    stderr_chunks: tuple[str, ...] = field(default_factory=tuple)

    @property
    def spawned(self) -> bool:
        return self.spawn_error is None

    @property
    def stderr(self) -> str:
        return "".join(self.stderr_chunks)


StderrCallback: TypeAlias = Callable[[str], None]
Runner: TypeAlias = Callable[..., Awaitable[ProcessOutcome]]


async def _drain(stream: asyncio.StreamReader, on_chunk: Callable[[bytes], None]) -> None:
    while True:
        chunk = await stream.read(CHUNK_SIZE)
        if not chunk:
            return
        on_chunk(chunk)


async def run_process(
    command: Sequence[str],
    *,
    cwd: str | Path | None = None,
    on_stderr: StderrCallback | None = None,
) -> ProcessOutcome:
    argv = tuple(command)
    if not argv:
        return ProcessOutcome(command=argv, spawn_error="empty command")
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (OSError, ValueError) as exc:
        logger.debug("Failed to start %s: %s", argv[0], exc)
        return ProcessOutcome(command=argv, spawn_error=str(exc))
    assert process.stdout is not None
    assert process.stderr is not None

    stdout = bytearray()
    stderr_chunks: list[str] = []
    stderr_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def _emit_stderr(text: str) -> None:
        if not text:
            return
        stderr_chunks.append(text)
        if on_stderr is not None:
            on_stderr(text)

    # Output may still be in flight when the process exits; the run is only
    # complete once both pipes hit EOF and the exit status is known.
    await asyncio.gather(
        _drain(process.stdout, stdout.extend),
        _drain(process.stderr, lambda chunk: _emit_stderr(stderr_decoder.decode(chunk))),
    )
    returncode = await process.wait()
    _emit_stderr(stderr_decoder.decode(b"", final=True))

    exit_code: int | None = returncode
    signal: int | None = None
    if returncode < 0:
        exit_code, signal = None, -returncode
    logger.debug(
        "%s exited with code %s and signal %s", argv[0], exit_code, signal
    )
    return ProcessOutcome(
        command=argv,
        exit_code=exit_code,
        signal=signal,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr_chunks=tuple(stderr_chunks),
    )
