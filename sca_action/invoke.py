from __future__ import annotations

import asyncio
import codecs
import dataclasses
import logging
import os
import signal
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Callable

from .context import is_windows_runner

SCA_RESULT_FILE = "scaResults.txt"
MAX_BUFFER = 10 * 1024 * 1024  # 10MB
_READ_CHUNK = 64 * 1024
_POLL_INTERVAL = 0.05

BLOCKING = "blocking"
STREAMING = "streaming"

logger = logging.getLogger(__name__)

ChunkObserver = Callable[[str], None]


@dataclass(frozen=True)
class InvokeResult:
    exit_code: int | None
    stdout: str
    stderr: str
    combined: str
    error: str | None = None
    result_path: Path | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and self.error is None


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def _read_capped(pipe: IO[bytes], sink: bytearray, limit: int, overflow: threading.Event) -> None:
    while True:
        data = pipe.read1(_READ_CHUNK)  # type: ignore[attr-defined]
        if not data:
            return
        room = limit - len(sink)
        if len(data) > room:
            sink.extend(data[: max(room, 0)])
            overflow.set()
            return
        sink.extend(data)


def _kill(proc: subprocess.Popen) -> None:
    try:
        if os.name == "posix":
            # the shell's children share its process group and hold the pipes open
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.terminate()
    except (ProcessLookupError, PermissionError) as e:
        logger.debug("Could not kill scanner: %s", e)


def run_blocking(command: str, *, max_buffer: int = MAX_BUFFER, cwd: Path | None = None) -> InvokeResult:
    """Run ``command`` through the shell and wait for it to exit.

    Each stream is read up to ``max_buffer`` bytes. As soon as either one
    goes past the ceiling the child is killed, the overflow is reported
    through ``error`` and the capped output is returned. Output written before
    a non-zero exit is returned as usual.
    """
    try:
        proc = subprocess.Popen(
            command,
            shell=True,
            cwd=str(cwd) if cwd else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=os.name == "posix",
        )
    except OSError as e:
        logger.error("Failed to start scanner: %s", e)
        return InvokeResult(exit_code=None, stdout="", stderr="", combined="", error=str(e))

    out = bytearray()
    err = bytearray()
    overflow = threading.Event()
    readers = [
        threading.Thread(target=_read_capped, args=(proc.stdout, out, max_buffer, overflow), daemon=True),
        threading.Thread(target=_read_capped, args=(proc.stderr, err, max_buffer, overflow), daemon=True),
    ]
    for t in readers:
        t.start()
    while any(t.is_alive() for t in readers):
        if overflow.wait(_POLL_INTERVAL):
            break

    error = None
    if overflow.is_set():
        error = f"scanner output exceeded {max_buffer} bytes"
        logger.warning("%s, killing scanner", error)
        _kill(proc)
        for t in readers:
            t.join(_POLL_INTERVAL * 10)
    else:
        for t in readers:
            t.join()
    code = proc.wait()
    if not any(t.is_alive() for t in readers):
        proc.stdout.close()  # type: ignore[union-attr]
        proc.stderr.close()  # type: ignore[union-attr]

    # snapshot: a reader left behind on overflow must not change the result
    stdout = _decode(bytes(out))
    stderr = _decode(bytes(err))
    return InvokeResult(
        exit_code=code,
        stdout=stdout,
        stderr=stderr,
        combined=f"{stdout}{stderr}",
        error=error,
    )


async def _pump(stream: asyncio.StreamReader, sink: list[str], observer: ChunkObserver | None) -> None:
    # chunk boundaries may split a multi-byte character
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await stream.read(_READ_CHUNK)
        chunk = decoder.decode(data, final=not data)
        if chunk:
            sink.append(chunk)
            if observer is not None:
                observer(chunk)
        if not data:
            return


async def _run_streaming(
    command: str,
    on_stdout: ChunkObserver | None,
    on_stderr: ChunkObserver | None,
    cwd: Path | None,
) -> InvokeResult:
    try:
        proc = await asyncio.create_subprocess_exec(
            "sh",
            "-c",
            command,
            cwd=str(cwd) if cwd else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.error("Failed to start scanner: %s", e)
        return InvokeResult(exit_code=None, stdout="", stderr="", combined="", error=str(e))

    out: list[str] = []
    err: list[str] = []
    assert proc.stdout is not None and proc.stderr is not None
    await asyncio.gather(
        _pump(proc.stdout, out, on_stdout),
        _pump(proc.stderr, err, on_stderr),
    )
    code = await proc.wait()

    # both readers hit EOF and the child is reaped: the buffers are final
    stdout = "".join(out)
    stderr = "".join(err)
    return InvokeResult(exit_code=code, stdout=stdout, stderr=stderr, combined=f"{stdout}{stderr}")


def run_streaming(
    command: str,
    *,
    on_stdout: ChunkObserver | None = None,
    on_stderr: ChunkObserver | None = None,
    cwd: Path | None = None,
) -> InvokeResult:
    """Run ``sh -c command`` and surface output chunks as they arrive.

    Each stream is accumulated on its own; observers see every chunk in
    arrival order. The returned result is built after the process closes.
    """
    return asyncio.run(_run_streaming(command, on_stdout, on_stderr, cwd))


def capture_mode(runner_os: str | None) -> str:
    return BLOCKING if is_windows_runner(runner_os) else STREAMING


def write_result_file(text: str, path: str | Path = SCA_RESULT_FILE) -> bool:
    target = Path(path)
    try:
        target.write_text(text, encoding="utf-8")
    except OSError as e:
        logger.error("Error writing result file %s: %s", target, e)
        return False
    logger.info("Scan output saved to %s", target)
    return True


def invoke(
    command: str,
    capture: str = STREAMING,
    *,
    result_file: str | Path | None = SCA_RESULT_FILE,
    on_stdout: ChunkObserver | None = None,
    on_stderr: ChunkObserver | None = None,
    cwd: Path | None = None,
) -> InvokeResult:
    """Run the scanner with the given capture strategy.

    The combined output is written to ``result_file`` (unless it is ``None``)
    whatever the exit status; ``result_path`` is set only when that write
    succeeded. Deciding whether a non-zero exit fails the job is
    left to the caller.
    """
    if capture == BLOCKING:
        result = run_blocking(command, cwd=cwd)
    elif capture == STREAMING:
        result = run_streaming(command, on_stdout=on_stdout, on_stderr=on_stderr, cwd=cwd)
    else:
        raise ValueError(f"unknown capture mode: {capture!r}")

    logger.info("Scan finished with exit code: %s", result.exit_code)
    if result_file is not None and write_result_file(result.combined, result_file):
        result = dataclasses.replace(result, result_path=Path(result_file))
    return result
