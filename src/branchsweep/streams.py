"""Byte sinks used to label and duplicate subprocess output.

A sink is any object with a ``write(bytes)`` method, such as
``sys.stdout.buffer``, an ``io.BytesIO`` or one of the writers below.
"""

from typing import Optional, Protocol, Union

from branchsweep.errors import WriteFailure

Buffer = Union[bytes, bytearray, memoryview]


class Sink(Protocol):
    """Writable byte destination."""

    def write(self, data: bytes, /) -> Optional[int]: ...


def flush_sink(sink: Sink) -> None:
    """Flush ``sink`` if it buffers.

    Raises:
        WriteFailure: If the sink rejects the buffered data
    """
    flush = getattr(sink, "flush", None)
    if flush is None:
        return
    try:
        flush()
    except WriteFailure:
        raise
    except (OSError, ValueError) as err:
        raise WriteFailure(f"flush failed: {err}") from err


class PrefixWriter:
    """Prepend a fixed label to every line written to a destination.

    Writes may split or merge lines arbitrarily; the label is emitted once at
    the start of each line. Every line that starts inside a single write gets
    its own label, so ``b"a\\nb"`` becomes ``label a\\n label b`` and leaves the
    writer mid-line.

    The destination is not owned: closing it is the caller's job.
    """

    def __init__(self, prefix: Union[str, bytes], destination: Sink) -> None:
        """Initialize writer.

        Args:
            prefix: Label written at the start of each line
            destination: Sink receiving the labeled output
        """
        self._prefix = prefix.encode("utf-8") if isinstance(prefix, str) else bytes(prefix)
        self._destination = destination
        self._mid_line = False

    @property
    def prefix(self) -> bytes:
        return self._prefix

    @property
    def destination(self) -> Sink:
        return self._destination

    @property
    def mid_line(self) -> bool:
        """True when the label for the current line has already been written."""
        return self._mid_line

    def write(self, data: Buffer) -> int:
        """Write ``data``, labeling each line.

        Returns:
            Number of input bytes forwarded, not counting labels

        Raises:
            WriteFailure: If the destination rejects a write. ``written`` holds
                the input bytes consumed before the failure; nothing after it
                was written.
        """
        data = bytes(data)
        start = 0
        while start < len(data):
            newline = data.find(b"\n", start)
            if newline == -1:
                self._write_span(data[start:], start)
                self._mid_line = True
                return len(data)
            self._write_span(data[start : newline + 1], start)
            self._mid_line = False
            start = newline + 1
        return len(data)

    def flush(self) -> None:
        flush_sink(self._destination)

    def _write_span(self, span: bytes, offset: int) -> None:
        if not self._mid_line:
            self._send(self._prefix, offset, counted=False)
        self._send(span, offset, counted=True)

    def _send(self, chunk: bytes, offset: int, counted: bool) -> None:
        try:
            n = self._destination.write(chunk)
        except (OSError, ValueError, WriteFailure) as err:
            raise WriteFailure(f"write failed: {err}", written=offset) from err
        # Raw streams may accept only part of the chunk
        if n is not None and n < len(chunk):
            written = offset + n if counted else offset
            raise WriteFailure(f"short write: {n} of {len(chunk)} bytes", written=written)


class TeeWriter:
    """Forward every write to a fixed set of sinks, in order.

    Stops at the first sink that fails; sinks after it do not see the write.
    """

    def __init__(self, *sinks: Sink) -> None:
        self._sinks = tuple(sinks)

    @property
    def sinks(self) -> tuple[Sink, ...]:
        return self._sinks

    def write(self, data: Buffer) -> int:
        """Write ``data`` to every sink.

        Raises:
            WriteFailure: If any sink rejects the write or accepts only part of it
        """
        data = bytes(data)
        for sink in self._sinks:
            try:
                n = sink.write(data)
            except WriteFailure:
                raise
            except (OSError, ValueError) as err:
                raise WriteFailure(f"write failed: {err}") from err
            if n is not None and n != len(data):
                raise WriteFailure(f"short write: {n} of {len(data)} bytes", written=n)
        return len(data)

    def flush(self) -> None:
        for sink in self._sinks:
            flush_sink(sink)
