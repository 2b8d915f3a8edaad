"""Run build commands and append their combined output to a log sink once each finishes."""

from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Mapping, Optional, Sequence, Union

OutputSink = Union[Path, IO[str], None]

TIMEOUT_EXIT_CODE = 124
NOT_FOUND_EXIT_CODE = 127


@dataclass
class CommandResult:
    command: str
    exit_code: int
    output: str
    timed_out: bool = False


def split_command(command: Union[str, Sequence[str]]) -> list[str]:
    if isinstance(command, str):
        return shlex.split(command)
    return list(command)


def write_output(sink: OutputSink, text: str) -> None:
    if sink is None or not text:
        return
    if isinstance(sink, Path):
        sink.parent.mkdir(parents=True, exist_ok=True)
        with sink.open("a", encoding="utf-8") as handle:
            handle.write(text)
    else:
        sink.write(text)
        sink.flush()


def run_command(
    command: Union[str, Sequence[str]],
    *,
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
    sink: OutputSink = None,
) -> CommandResult:
    args = split_command(command)
    display = " ".join(args)
    write_output(sink, f"$ {display}\n")
    try:
        process = subprocess.run(
            args,
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env else None,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as err:
        partial = err.output or ""
        if isinstance(partial, bytes):
            partial = partial.decode("utf-8", errors="replace")
        write_output(sink, partial + f"\n[timed out after {timeout}s]\n")
        return CommandResult(display, TIMEOUT_EXIT_CODE, partial, timed_out=True)
    except FileNotFoundError as err:
        write_output(sink, f"{err}\n")
        return CommandResult(display, NOT_FOUND_EXIT_CODE, str(err))
    write_output(sink, process.stdout)
    return CommandResult(display, process.returncode, process.stdout)


def new_log_path(root: Path) -> Path:
    """Create an empty, timestamp-named log file under `root`."""

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S-%f")
    root.mkdir(parents=True, exist_ok=True)
    path = root / f"{stamp}.log"
    path.touch()
    return path
