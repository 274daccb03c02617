"""Run external commands with a deadline and labeled output."""

import io
import logging
import os
import selectors
import shlex
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from branchsweep.config import Config
from branchsweep.errors import CommandFailure, WriteFailure
from branchsweep.streams import PrefixWriter, Sink, TeeWriter, flush_sink

logger = logging.getLogger(__name__)

CMD_PREFIX = b"[cmd] "
STDOUT_PREFIX = b"[cmd][stdout] "
STDERR_PREFIX = b"[cmd][stderr] "

CHUNK_SIZE = 4096


@dataclass(frozen=True)
class CommandResult:
    """One finished command."""

    name: str
    args: tuple[str, ...]
    timeout: float
    stdout: bytes
    returncode: int

    @property
    def command(self) -> str:
        return shlex.join([self.name, *self.args])


class CommandRunner:
    """Runs commands one at a time, each bound by a deadline.

    stderr is always relayed through a ``[cmd][stderr] `` labeled writer.
    stdout is captured and, in verbose mode, also relayed through a
    ``[cmd][stdout] `` labeled writer.
    """

    def __init__(
        self,
        config: Config,
        stdout: Optional[Sink] = None,
        stderr: Optional[Sink] = None,
        cwd: Optional[Union[str, Path]] = None,
    ) -> None:
        """Initialize runner.

        Args:
            config: Run configuration (verbosity, default deadline)
            stdout: Sink for echoed commands and relayed stdout, defaults to ``sys.stdout.buffer``
            stderr: Sink for relayed stderr, defaults to ``sys.stderr.buffer``
            cwd: Working directory for every command
        """
        self.config = config
        self.cwd = cwd
        self._stdout = stdout
        self._stderr = stderr

    def run(self, name: str, *args: str, timeout: Optional[float] = None) -> bytes:
        """Run a command and return its standard output.

        Raises:
            CommandFailure: If the command can't start, exits non-zero or exceeds the deadline
        """
        return self.execute(name, *args, timeout=timeout).stdout

    def execute(self, name: str, *args: str, timeout: Optional[float] = None) -> CommandResult:
        """Run a command to completion.

        Args:
            name: Executable to run
            args: Command arguments
            timeout: Deadline in seconds, defaults to ``config.timeout``

        Returns:
            The finished command with its captured stdout

        Raises:
            CommandFailure: If the command can't start, exits non-zero or exceeds the deadline
            WriteFailure: If relaying output to a sink fails
        """
        argv = [name, *args]
        command = shlex.join(argv)
        if timeout is None:
            timeout = self.config.timeout
        out = self._stdout_sink()
        err = self._stderr_sink()

        if self.config.verbose:
            # Undecodable bytes in arguments are carried as surrogates
            try:
                out.write(CMD_PREFIX + os.fsencode(command) + b"\n")
                flush_sink(out)
            except (OSError, ValueError) as e:
                raise WriteFailure(f"write failed: {e}") from e

        capture = io.BytesIO()
        stdout_writer: Sink = capture
        if self.config.verbose:
            stdout_writer = TeeWriter(PrefixWriter(STDOUT_PREFIX, out), capture)
        stderr_writer = PrefixWriter(STDERR_PREFIX, err)

        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
            )
        except OSError as e:
            raise CommandFailure(command, f"failed to start: {e}") from e

        logger.debug("Started pid=%s: %s", process.pid, command)
        deadline = time.monotonic() + timeout
        try:
            _relay(process, {process.stdout: stdout_writer, process.stderr: stderr_writer}, deadline, timeout)
            returncode = process.wait(timeout=max(deadline - time.monotonic(), 0))
        except subprocess.TimeoutExpired as e:
            logger.debug("Killing pid=%s after %ss: %s", process.pid, timeout, command)
            _kill(process)
            raise CommandFailure(command, f"deadline of {timeout:g}s exceeded") from e
        except BaseException:
            _kill(process)
            raise
        finally:
            for pipe in (process.stdout, process.stderr):
                if pipe is not None:
                    pipe.close()

        logger.debug("Finished pid=%s with status %s", process.pid, returncode)
        if returncode != 0:
            raise CommandFailure(command, f"exit status {returncode}", returncode)

        return CommandResult(
            name=name,
            args=tuple(args),
            timeout=timeout,
            stdout=capture.getvalue(),
            returncode=returncode,
        )

    def _stdout_sink(self) -> Sink:
        if self._stdout is not None:
            return self._stdout
        # Keep ordering with anything already printed through the text layer
        flush_sink(sys.stdout)
        return sys.stdout.buffer

    def _stderr_sink(self) -> Sink:
        if self._stderr is not None:
            return self._stderr
        flush_sink(sys.stderr)
        return sys.stderr.buffer


def _relay(process: subprocess.Popen, writers: dict, deadline: float, timeout: float) -> None:
    """Copy both pipes to their writers until EOF, in whatever chunks the OS hands back."""
    with selectors.DefaultSelector() as selector:
        for pipe, writer in writers.items():
            selector.register(pipe, selectors.EVENT_READ, writer)

        while selector.get_map():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise subprocess.TimeoutExpired(process.args, timeout)
            for key, _ in selector.select(remaining):
                chunk = os.read(key.fd, CHUNK_SIZE)
                if not chunk:
                    selector.unregister(key.fileobj)
                    continue
                key.data.write(chunk)
                flush_sink(key.data)


def _kill(process: subprocess.Popen) -> None:
    if process.poll() is None:
        process.kill()
    process.wait()
