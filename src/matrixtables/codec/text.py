"""
Text Table Reader
=================
Reads a named table from a self-describing ASCII text file.

File layout::

    #1
    double tab1(3,2)   # comment
      0.0  1.0
      1.0  2.0
      2.0  4.0
    float tab2(2,2)
      ...

The first line must start with "#1". Table headers have the form
"<double|float> <name>(<rows>,<cols>)"; lines that are not a complete header
are skipped. The numbers of the matching table follow on the next lines,
separated by spaces, tabs, commas or semicolons, and are stored row-wise,
wrapping to the next row after <cols> numbers. "#" starts a comment that runs
to the end of the line; empty and comment-only lines are ignored.
"""
from __future__ import annotations

import logging
import re
from typing import BinaryIO, NoReturn, Optional, TYPE_CHECKING

import numpy as np

from matrixtables.codec.lines import LineReader
from matrixtables.codec.numbers import is_number, parse_number
from matrixtables.config import TEXT_FORMAT_TAG
from matrixtables.errors import (
    ContainerNotFoundError,
    DeclaredSizeMismatchError,
    TableAllocationError,
    TableFormatError,
    TableNotFoundError,
)
from matrixtables.table import Table, TextTableHeader

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

_NUMBER_DELIMITERS = re.compile(r"[ \t,;\r]+")


def _tokens(line: str) -> list[str]:
    return [token for token in _NUMBER_DELIMITERS.split(line) if token]


def _is_blank_or_comment(line: str) -> bool:
    stripped = line.lstrip(" \t")
    return not stripped or stripped.startswith("#")


def _fail(error_class: type[TableFormatError], msg: str, line_number: Optional[int] = None) -> NoReturn:
    logger.error(msg)
    raise error_class(msg, line_number=line_number)


def _check_format_line(reader: LineReader, file_name: str) -> None:
    """Validate the "#1" format and version line."""
    first = reader.read_line()
    if first is None:
        _fail(
            TableFormatError,
            f'Error reading first line from file "{file_name}": End-Of-File reached.',
        )
    if first.startswith(TEXT_FORMAT_TAG):
        return

    prefix = f'Error reading format and version information in first line of file "{file_name}": '
    if len(first) == 0:
        _fail(TableFormatError, prefix + '"#1" expected.', line_number=1)
    _fail(TableFormatError, prefix + f'"#1" expected, but "{first[:2]}" found.', line_number=1)


def _find_header(reader: LineReader, table_name: str) -> Optional[TextTableHeader]:
    """Scan forward to the header of the requested table."""
    for line in reader:
        tokens = TextTableHeader.tokenize(line)
        # Names of other tables are never consulted further
        if len(tokens) < 2 or tokens[1] != table_name:
            continue
        header = TextTableHeader.parse(line)
        if header is None:
            logger.debug(f"Skipping malformed header of the requested table in line {reader.line_number}: {line!r}")
            continue
        return header
    return None


def _allocate(rows: int, cols: int) -> npt.NDArray[np.float64]:
    try:
        return np.empty(rows * cols, dtype=np.float64)
    except (MemoryError, ValueError):
        logger.error("Memory allocation error")
        raise TableAllocationError("Memory allocation error") from None


def _peek_partial_read(reader: LineReader) -> Optional[int]:
    """
    Look at the first data line following a completely read table.

    Returns:
        Its line number if that line starts with a number, else None.
    """
    for line in reader:
        if _is_blank_or_comment(line):
            continue
        tokens = _tokens(line.lstrip(" \t"))
        if tokens and is_number(tokens[0]):
            return reader.line_number
        # Not a number: no further check whether it is legal
        return None
    return None


def _read_body(
    reader: LineReader,
    header: TextTableHeader,
    file_name: str,
) -> npt.NDArray[np.float64]:
    n_row = header.declared_rows
    n_col = header.declared_cols
    table = _allocate(n_row, n_col)
    where = f'matrix "{header.label()}" from file "{file_name}"'

    i = 0  # row index
    j = 0  # column index
    while i < n_row:
        line = reader.read_line()
        if line is None:
            _fail(TableFormatError, f"End-of-file reached when reading numeric data of {where}")
        if _is_blank_or_comment(line):
            continue

        line_number = reader.line_number
        trailing: Optional[str] = None
        for token in _tokens(line):
            if token.startswith("#"):
                # Trailing comment
                break
            if i == n_row:
                trailing = token
                break
            value, consumed = parse_number(token)
            if not consumed:
                _fail(
                    TableFormatError,
                    f"Error in line {line_number} when reading numeric data of {where}",
                    line_number=line_number,
                )
            table[i * n_col + j] = value
            j += 1
            if j == n_col:
                i += 1
                j = 0

        if trailing is not None:
            if is_number(trailing):
                _fail(
                    DeclaredSizeMismatchError,
                    f"The table dimensions of {where} do not match the actual table size "
                    f"(line {line_number}).",
                    line_number=line_number,
                )
            _fail(
                TableFormatError,
                f"Error in line {line_number} when reading numeric data of {where}",
                line_number=line_number,
            )

    partial_line = _peek_partial_read(reader)
    if partial_line is not None:
        logger.warning(
            f"The table dimensions of {where} do not match the actual table size "
            f"(line {partial_line})."
        )
    return table


def parse_text_table(stream: BinaryIO, table_name: str, file_name: str = "<stream>") -> Table:
    """
    Read a table from an open binary stream of a "#1" text file.

    Args:
        stream: Binary stream positioned at the start of the file.
        table_name: Exact (case-sensitive) name of the table.
        file_name: Name used in diagnostics.

    Returns:
        The table in row-major order with its declared size.

    Raises:
        TableFormatError: Bad "#1" line, unparsable number, or end of file
            before all declared rows were read.
        DeclaredSizeMismatchError: The last declared row is followed by
            another number on the same line.
        TableNotFoundError: No header with the given name.
        TableAllocationError: The declared size cannot be allocated.
    """
    reader = LineReader(stream)
    _check_format_line(reader, file_name)

    header = _find_header(reader, table_name)
    if header is None:
        msg = f'Table matrix "{table_name}" not found on file "{file_name}".'
        logger.error(msg)
        raise TableNotFoundError(msg)

    logger.debug(f"Found table header {header.label()} in line {reader.line_number} of {file_name}")
    if header.declared_rows == 0 or header.declared_cols == 0:
        logger.warning(f'Table matrix "{header.label()}" on file "{file_name}" is empty.')
        return Table.absent()

    data = _read_body(reader, header, file_name)
    return Table(rows=header.declared_rows, cols=header.declared_cols, data=data)


def read_text_table(file_name: str, table_name: str) -> Table:
    """Open a "#1" text file and read the named table (see parse_text_table)."""
    try:
        stream = open(file_name, "rb")
    except OSError:
        msg = f'Not possible to open file "{file_name}": No such file or directory'
        logger.error(msg)
        raise ContainerNotFoundError(msg) from None

    with stream:
        return parse_text_table(stream, table_name, file_name=file_name)
