"""Supervised external processes: spawn, stream parsing, timeout and kill."""

from __future__ import annotations

import asyncio
import codecs
from dataclasses import dataclass, field
import logging
import re
from typing import Callable, List, Optional, Sequence


logger = logging.getLogger(__name__)

LineCallback = Callable[[str], None]

READ_CHUNK_SIZE = 64 * 1024
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass
class ProcessResult:
    """Outcome of one supervised run."""

    returncode: Optional[int]
    timed_out: bool = False
    stdout_lines: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.returncode == 0


def _emit(line: str, callback: Optional[LineCallback], sink: Optional[List[str]]) -> None:
    if not line:
        return
    if sink is not None:
        sink.append(line)
    if callback is not None:
        callback(line)


async def _pump(stream: Optional[asyncio.StreamReader], callback: Optional[LineCallback], sink: Optional[List[str]]) -> None:
    """
    Feed ``stream`` to ``callback`` one line at a time.

    Reads fixed-size chunks and splits on ``\\r`` as well as ``\\n``: progress
    bars redraw with carriage returns and never reach a newline.
    """
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    pending = ""
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        parts = _LINE_BREAK.split(pending + decoder.decode(chunk))
        pending = parts.pop()
        for line in parts:
            _emit(line, callback, sink)
    _emit(pending + decoder.decode(b"", final=True), callback, sink)


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


async def run_supervised(
    cmd: Sequence[str],
    *,
    timeout: Optional[float] = None,
    on_stdout: Optional[LineCallback] = None,
    on_stderr: Optional[LineCallback] = None,
) -> ProcessResult:
    """
    Run ``cmd`` feeding each output line to the callbacks.

    A callback that raises aborts the run: the process is killed at once and
    the exception propagates. Exceeding ``timeout`` kills the process and
    returns a result with ``timed_out=True``.
    """
    logger.debug("Spawning `%s`", " ".join(str(part) for part in cmd))
    proc = await asyncio.create_subprocess_exec(
        *[str(part) for part in cmd],
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    result = ProcessResult(returncode=None)

    async def _supervise() -> int:
        await asyncio.gather(
            _pump(proc.stdout, on_stdout, result.stdout_lines),
            _pump(proc.stderr, on_stderr, None),
        )
        return await proc.wait()

    try:
        result.returncode = await asyncio.wait_for(_supervise(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Process %s exceeded %ss, killing", cmd[0], timeout)
        result.timed_out = True
        await _terminate(proc)
        result.returncode = proc.returncode
    except BaseException:
        await _terminate(proc)
        raise
    return result
