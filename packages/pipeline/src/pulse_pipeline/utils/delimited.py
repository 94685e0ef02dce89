"""
utils/delimited.py — CSV/TSV parsing for chunked streams and whole bodies.

Network and decompression streams hand over chunks at arbitrary byte offsets,
frequently mid-line and occasionally mid-character. DelimitedStreamParser
keeps the unfinished trailing line (and, for bytes input, any partial UTF-8
sequence) between feed() calls, so the rows produced are identical no matter
where the chunk boundaries fall.

Bodies that are already complete go through read_delimited, a polars
read_csv wrapper that keeps every column as text.

Stream parser rules:
  - The first non-empty line is the header.
  - Fields are whitespace-trimmed. Rows shorter than the header are padded
    with "" and extra fields are dropped, so every row has len(header) fields.
  - A quote character at the start of a field (after optional whitespace)
    opens a quoted field: the delimiter and newlines are literal inside it
    and a doubled quote is a literal quote. A quote anywhere else in a
    field is an ordinary character. A record whose quote is still open at
    end of line continues on the next line.
  - An open quoted record that grows past max_record_chars is abandoned and
    its lines are split without quote handling.
  - Blank lines are skipped; "\\r\\n" endings are accepted.
  - close() parses whatever is left, including a final line with no newline.

Usage:
    parser = DelimitedStreamParser(delimiter="\\t")
    async for chunk in stream:
        for row in parser.feed(chunk):
            ...
    for row in parser.close():
        ...

    df = read_delimited(body)           # whole body -> all-String DataFrame
"""

from __future__ import annotations

import codecs
import io

import polars as pl
import structlog

log = structlog.get_logger(__name__)

DEFAULT_MAX_RECORD_CHARS = 1_048_576


class DelimitedStreamParser:
    """Stateful line-oriented parser; feed() returns completed data rows."""

    def __init__(
        self,
        delimiter: str = ",",
        quote: str = '"',
        max_record_chars: int = DEFAULT_MAX_RECORD_CHARS,
    ) -> None:
        if len(delimiter) != 1 or len(quote) != 1:
            raise ValueError("delimiter and quote must be single characters")
        self.delimiter = delimiter
        self.quote = quote
        self.max_record_chars = max_record_chars
        self.header: list[str] | None = None
        self.rows_parsed = 0

        self._buffer = ""
        self._pending: str | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(self, chunk: str | bytes) -> list[list[str]]:
        """Consume one chunk and return the data rows it completed."""
        if self._closed:
            raise RuntimeError("parser is closed")
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        if not text:
            return []
        lines = (self._buffer + text).split("\n")
        self._buffer = lines.pop()
        return self._consume(lines)

    def close(self) -> list[list[str]]:
        """Flush the trailing fragment and any open quoted record."""
        if self._closed:
            return []
        self._closed = True
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        rows = self._consume([tail]) if tail else []
        if self._pending is not None:
            # Unterminated quote at end of input: the field runs to EOF
            fields, _ = self._split_quoted(self._pending)
            self._pending = None
            self._emit(fields, rows)
        return rows

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _consume(self, lines: list[str]) -> list[list[str]]:
        rows: list[list[str]] = []
        quote = self.quote
        for line in lines:
            if line.endswith("\r"):
                line = line[:-1]

            if self._pending is not None:
                line = f"{self._pending}\n{line}"
                self._pending = None
            elif not line.strip():
                continue

            if quote not in line:
                self._emit(line.split(self.delimiter), rows)
                continue

            fields, still_open = self._split_quoted(line)
            if not still_open:
                self._emit(fields, rows)
            elif len(line) <= self.max_record_chars:
                self._pending = line
            else:
                log.warning(
                    "unbalanced_quote_recovered",
                    record_chars=len(line),
                    rows_parsed=self.rows_parsed,
                )
                for physical in line.split("\n"):
                    if physical.strip():
                        self._emit(physical.replace(quote, "").split(self.delimiter), rows)
        return rows

    def _split_quoted(self, line: str) -> tuple[list[str], bool]:
        """Split one logical record; returns (fields, quote_still_open)."""
        quote, delim = self.quote, self.delimiter
        fields: list[str] = []
        buf: list[str] = []
        in_quotes = False
        i, n = 0, len(line)
        while i < n:
            c = line[i]
            if in_quotes:
                if c == quote:
                    if i + 1 < n and line[i + 1] == quote:
                        buf.append(quote)
                        i += 2
                        continue
                    in_quotes = False
                else:
                    buf.append(c)
            elif c == quote and not "".join(buf).strip():
                in_quotes = True
            elif c == delim:
                fields.append("".join(buf))
                buf = []
            else:
                buf.append(c)
            i += 1
        fields.append("".join(buf))
        return fields, in_quotes

    def _emit(self, fields: list[str], rows: list[list[str]]) -> None:
        stripped = [f.strip() for f in fields]
        if self.header is None:
            if stripped:
                stripped[0] = stripped[0].lstrip("\ufeff").strip()
            self.header = stripped
            return
        width = len(self.header)
        if len(stripped) < width:
            stripped.extend([""] * (width - len(stripped)))
        elif len(stripped) > width:
            del stripped[width:]
        rows.append(stripped)
        self.rows_parsed += 1



def read_delimited(text: str, delimiter: str = ",") -> pl.DataFrame:
    """
    Parse a complete body in one call; every column comes back as String.

    Header names lose a leading BOM and surrounding whitespace. Lines longer
    than the header are truncated.

    Raises:
        ValueError: The body is empty or cannot be parsed.
    """
    try:
        df = pl.read_csv(
            io.StringIO(text),
            separator=delimiter,
            infer_schema_length=0,
            truncate_ragged_lines=True,
        )
    except pl.exceptions.PolarsError as exc:
        raise ValueError(f"unreadable delimited body: {exc}") from exc
    return df.rename({c: c.lstrip("\ufeff").strip() for c in df.columns})
