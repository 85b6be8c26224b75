"""Line reassembly for chunked process output.

Pipes deliver output in arbitrary-sized chunks that rarely line up with
record boundaries. LineReassembler buffers the trailing partial record
between chunks and hands back only complete newline-terminated records.
"""

from __future__ import annotations

import codecs

RECORD_DELIMITER = "\n"


class LineReassembler:
    """Accumulate chunks and yield complete records.

    After every ``feed`` the buffer holds at most one partial record.
    Empty lines are returned as zero-length records; skipping them is the
    decoder's job.

    Example:
        >>> lines = LineReassembler()
        >>> lines.feed('{"type": "sys')
        []
        >>> lines.feed('tem"}\\n{"ty')
        ['{"type": "system"}']
        >>> lines.flush()
        '{"ty'
    """

    def __init__(self, delimiter: str = RECORD_DELIMITER) -> None:
        self._delimiter = delimiter
        self._buffer = ""
        # Multi-byte characters may straddle chunk boundaries
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """The buffered partial record."""
        return self._buffer

    def feed(self, chunk: str | bytes) -> list[str]:
        """Fold a chunk in and return the records it completed.

        Args:
            chunk: Text, or raw bytes decoded as UTF-8.

        Returns:
            Complete records in arrival order, without delimiters.
        """
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)

        pieces = (self._buffer + chunk).split(self._delimiter)
        self._buffer = pieces.pop()
        return pieces

    def flush(self) -> str | None:
        """Return the remaining buffer as a final record.

        Call once the stream has ended.

        Returns:
            The trailing record, or None if nothing is buffered.
        """
        tail = self._decoder.decode(b"", final=True)
        remaining = self._buffer + tail
        self._buffer = ""
        return remaining or None

    def reset(self) -> None:
        """Drop any buffered partial record."""
        self._buffer = ""
        self._decoder.reset()
