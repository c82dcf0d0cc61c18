"""
Line Reader
===========
Reads newline-terminated records of arbitrary length from a binary stream.

The buffer starts at LINE_BUFFER_LENGTH bytes; whenever a read fills it
without reaching a newline the capacity is doubled and reading continues
after the bytes already held. The stream is never rewound.
"""
from __future__ import annotations

import logging
from typing import BinaryIO, Iterator, Optional

from matrixtables.config import LINE_BUFFER_LENGTH, TEXT_ENCODING
from matrixtables.errors import TableAllocationError

logger = logging.getLogger(__name__)


class LineReader:
    def __init__(
        self,
        stream: BinaryIO,
        initial_length: int = LINE_BUFFER_LENGTH,
        encoding: str = TEXT_ENCODING,
    ) -> None:
        """
        Args:
            stream: Binary stream positioned at the start of a line.
            initial_length: Initial buffer capacity in bytes (at least 2).
            encoding: Text encoding used to decode each line.
        """
        if initial_length < 2:
            raise ValueError(f"Initial line buffer length must be at least 2, got {initial_length}.")
        self._stream = stream
        self._encoding = encoding
        self._capacity = initial_length
        self._buffer = bytearray()
        self._line_number = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def line_number(self) -> int:
        """Number of lines returned so far (1-based number of the last line)."""
        return self._line_number

    def _append(self, chunk: bytes) -> None:
        try:
            self._buffer += chunk
        except MemoryError:
            logger.error("Memory allocation error")
            raise TableAllocationError("Memory allocation error") from None

    def read_line(self) -> Optional[str]:
        """
        Read the next line without its trailing newline.

        Returns:
            The decoded line, or None at end of stream.
        """
        self._buffer.clear()
        chunk = self._stream.readline(self._capacity - 1)
        if not chunk:
            return None
        self._append(chunk)

        while not self._buffer.endswith(b"\n"):
            self._capacity *= 2
            chunk = self._stream.readline(self._capacity - 1 - len(self._buffer))
            if not chunk:
                # Last line without newline
                break
            self._append(chunk)

        if self._buffer.endswith(b"\n"):
            del self._buffer[-1]
        self._line_number += 1
        return self._buffer.decode(self._encoding)

    def __iter__(self) -> Iterator[str]:
        while (line := self.read_line()) is not None:
            yield line
