"""
Child process runner

Every external tool (ffmpeg, ffprobe, whisper) goes through run_process so output is
consumed line by line instead of buffered, runaway children are killed on a deadline,
and failures surface as ProcessExitError / ProcessTimeoutError.
"""

import logging
import subprocess
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, List, Optional

from clipforge.config.constants import STDERR_TAIL_CHARS
from clipforge.utils.exceptions import ConfigError, ProcessExitError, ProcessTimeoutError

logger = logging.getLogger(__name__)

LineCallback = Callable[[str], None]

_TAIL_LINES = 200


@dataclass
class ProcessResult:
    returncode: int
    stdout: str
    stderr_tail: str


def _pump(stream, on_line: Optional[LineCallback], tail: Optional[deque],
          collected: Optional[list], failures: list) -> None:
    for raw in stream:
        line = raw.rstrip("\n")
        if collected is not None:
            collected.append(raw)
        if tail is not None and line:
            tail.append(line)
        if on_line and line and not failures:
            try:
                on_line(line)
            except Exception as e:
                # Re-raised on the calling thread once the child exits
                failures.append(e)
    stream.close()


def run_process(
    cmd: List[str],
    timeout: Optional[float] = None,
    on_line: Optional[LineCallback] = None,
    cwd: Optional[str] = None,
    capture_stdout: bool = False,
) -> ProcessResult:
    """Run a command to completion, streaming stdout/stderr lines to `on_line`.

    stderr keeps only a bounded tail for error reporting. stdout is returned in
    full only when `capture_stdout` is set (ffprobe JSON); otherwise its lines are
    streamed like stderr.
    """
    logger.debug(f"Running: {' '.join(str(c) for c in cmd)}")
    try:
        proc = subprocess.Popen(
            [str(c) for c in cmd],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            cwd=cwd,
        )
    except FileNotFoundError:
        raise ConfigError(f"{cmd[0]} not found. Install it or set its path in the environment")

    tail: deque = deque(maxlen=_TAIL_LINES)
    stdout_chunks: Optional[list] = [] if capture_stdout else None
    failures: list = []

    readers = [
        threading.Thread(target=_pump, args=(proc.stderr, on_line, tail, None, failures), daemon=True),
        threading.Thread(
            target=_pump,
            args=(proc.stdout, None if capture_stdout else on_line, None, stdout_chunks, failures),
            daemon=True,
        ),
    ]
    for reader in readers:
        reader.start()

    try:
        returncode = proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.error(f"⏱️ {cmd[0]} exceeded {timeout}s, killing")
        proc.kill()
        proc.wait()
        for reader in readers:
            reader.join(timeout=5)
        raise ProcessTimeoutError(list(cmd), timeout)

    for reader in readers:
        reader.join()

    stderr_tail = "\n".join(tail)[-STDERR_TAIL_CHARS:]

    if failures:
        raise failures[0]

    if returncode != 0:
        logger.error(f"❌ {cmd[0]} exited with code {returncode}")
        raise ProcessExitError(list(cmd), returncode, stderr_tail)

    return ProcessResult(
        returncode=returncode,
        stdout="".join(stdout_chunks) if stdout_chunks is not None else "",
        stderr_tail=stderr_tail,
    )
