"""
Minimal quoted-CSV row splitter for GTFS text tables.

Handles the subset of RFC 4180 that GTFS feeds actually use:
  - fields separated by ","
  - fields optionally wrapped in double quotes
  - "" inside a quoted field is a literal quote
  - rows end at \n, \r\n or a bare \r (only outside quotes)

Malformed quoting never raises: an unterminated quote simply runs to the
end of the input.  Stripping a UTF-8 BOM from the header is left to the
caller, since only the first field of a table can carry one.
"""

from typing import Callable, Iterator

RowCallback = Callable[[list[str], int], None]


def iter_csv_rows(content: str) -> Iterator[tuple[int, list[str]]]:
    """Yield (row_index, fields) for every non-empty row in content."""
    row: list[str] = []
    field: list[str] = []
    in_quotes = False
    started = False     # any raw content seen on the current row
    row_index = 0
    i = 0
    n = len(content)

    while i < n:
        char = content[i]

        if char == '"':
            started = True
            if in_quotes and i + 1 < n and content[i + 1] == '"':
                field.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
            i += 1
            continue

        if not in_quotes and char == ",":
            started = True
            row.append("".join(field))
            field = []
            i += 1
            continue

        if not in_quotes and (char == "\n" or char == "\r"):
            if char == "\r" and i + 1 < n and content[i + 1] == "\n":
                i += 1
            i += 1
            if started:
                row.append("".join(field))
                yield row_index, row
                row_index += 1
            row = []
            field = []
            started = False
            continue

        started = True
        field.append(char)
        i += 1

    if started:
        row.append("".join(field))
        yield row_index, row


def for_each_csv_row(content: str, on_row: RowCallback) -> None:
    """Invoke on_row(fields, row_index) for each row, in order."""
    for row_index, row in iter_csv_rows(content):
        on_row(row, row_index)
