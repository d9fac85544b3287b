"""RETS wire codec: DMQL2 query building and response parsing.

Pure functions, no network. Response parsing is two-stage:

  1. ``scan_header`` finds the delimiter declaration and the single
     ``<COLUMNS>`` block and returns a ColumnSchema (or None if malformed).
  2. ``scan_rows`` applies that schema to every ``<DATA>`` block.

Reply codes:
  0      success
  20201  no records found (empty result, not an error)
  other  provider error, reply text preserved
"""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterator
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict

from rentcomps.core.schemas import RawRecord

logger = logging.getLogger(__name__)

REPLY_SUCCESS = 0
REPLY_NO_RECORDS = 20201

CAPABILITY_NAMES = ("Search", "GetObject", "Logout", "GetMetadata")

DEFAULT_DELIMITER = "\t"

_REPLY_CODE_RE = re.compile(r'ReplyCode\s*=\s*"(\d+)"', re.IGNORECASE)
_REPLY_TEXT_RE = re.compile(r'ReplyText\s*=\s*"([^"]*)"', re.IGNORECASE)
_DELIMITER_RE = re.compile(r'<DELIMITER\s+value\s*=\s*"([^"]*)"', re.IGNORECASE)
_COUNT_RE = re.compile(r'<COUNT\s+Records\s*=\s*"(\d+)"', re.IGNORECASE)


# ---------------------------------------------------------------------------
# Query conditions
# ---------------------------------------------------------------------------


class Condition(BaseModel, ABC):
    """One parenthesized DMQL2 condition on a single field."""

    model_config = ConfigDict(frozen=True)

    field: str

    @abstractmethod
    def render(self) -> str:
        """Return the condition as ``(FIELD=...)``."""


class Equals(Condition):
    value: str | int | float

    def render(self) -> str:
        return f"({self.field}={format_value(self.value)})"


class Between(Condition):
    low: str | int | float
    high: str | int | float

    def render(self) -> str:
        return f"({self.field}={format_value(self.low)}-{format_value(self.high)})"


class OneOf(Condition):
    values: tuple[str, ...]

    def render(self) -> str:
        return f"({self.field}=|{','.join(self.values)})"


class AtLeast(Condition):
    """Open-ended lower bound, e.g. ``(ListDate=2025-01-01+)``."""

    value: str | int | float

    def render(self) -> str:
        return f"({self.field}={format_value(self.value)}+)"


def build_query(conditions: list[Condition]) -> str:
    """Join conditions into a conjunctive DMQL2 query string."""
    return ",".join(c.render() for c in conditions)


def format_value(value: str | int | float) -> str:
    """Render a query value; whole floats lose their trailing ``.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ---------------------------------------------------------------------------
# Reply code / capabilities
# ---------------------------------------------------------------------------


def parse_reply_code(body: str) -> tuple[int, str]:
    """Extract ``(ReplyCode, ReplyText)`` from a response body.

    A body with no reply code is treated as success.
    """
    code_match = _REPLY_CODE_RE.search(body)
    if code_match is None:
        return REPLY_SUCCESS, ""
    text_match = _REPLY_TEXT_RE.search(body)
    text = text_match.group(1) if text_match else ""
    return int(code_match.group(1)), text


def parse_count(body: str) -> int | None:
    """Extract the ``<COUNT Records="N"/>`` value, if the server sent one."""
    match = _COUNT_RE.search(body)
    return int(match.group(1)) if match else None


def parse_capabilities(body: str, login_url: str) -> dict[str, str]:
    """Extract capability URLs from ``Key=Value`` lines of a login response.

    Relative URLs are resolved against the login endpoint's origin.
    Unknown keys are ignored.
    """
    parts = urlsplit(login_url)
    origin = f"{parts.scheme}://{parts.netloc}"
    wanted = {name.lower(): name for name in CAPABILITY_NAMES}

    capabilities: dict[str, str] = {}
    for line in body.splitlines():
        key, sep, value = line.partition("=")
        if not sep:
            continue
        name = wanted.get(key.strip().lower())
        value = value.strip()
        if name is None or not value or name in capabilities:
            continue
        if value.lower().startswith(("http://", "https://")):
            capabilities[name] = value
        else:
            capabilities[name] = origin + (value if value.startswith("/") else f"/{value}")
    return capabilities


# ---------------------------------------------------------------------------
# COMPACT / COMPACT-DECODED tabular payload
# ---------------------------------------------------------------------------


class ColumnSchema(BaseModel):
    """Delimiter and ordered column names declared by a COMPACT response."""

    model_config = ConfigDict(frozen=True)

    delimiter: str = DEFAULT_DELIMITER
    columns: tuple[str, ...]


def scan_header(body: str) -> ColumnSchema | None:
    """Locate the delimiter declaration and header block.

    Returns None (after logging) for an undecodable delimiter or a missing
    or unterminated ``<COLUMNS>`` block.
    """
    delimiter = DEFAULT_DELIMITER
    delim_match = _DELIMITER_RE.search(body)
    if delim_match is not None:
        try:
            delimiter = chr(int(delim_match.group(1), 16))
        except ValueError:
            logger.warning("Undecodable DELIMITER value '%s'", delim_match.group(1))
            return None

    blocks = list(_iter_blocks(body, "COLUMNS"))
    if not blocks:
        return None
    if len(blocks) > 1:
        logger.warning("Response declares %d COLUMNS blocks, using the first", len(blocks))
    header = blocks[0]
    if header is None:
        logger.warning("COLUMNS block is not terminated")
        return None

    columns = tuple(c for c in header.split(delimiter) if c)
    if not columns:
        logger.warning("COLUMNS block is empty")
        return None
    return ColumnSchema(delimiter=delimiter, columns=columns)


def scan_rows(body: str, schema: ColumnSchema) -> list[RawRecord]:
    """Split every ``<DATA>`` block and align values to the schema's columns.

    A single leading and trailing empty token (from the delimiter framing
    each line) is dropped. Missing trailing values become "".
    """
    rows: list[RawRecord] = []
    for block in _iter_blocks(body, "DATA"):
        if block is None:
            logger.warning("Truncated DATA block dropped after %d rows", len(rows))
            break
        values = block.split(schema.delimiter)
        if values and values[0] == "":
            values = values[1:]
        if values and values[-1] == "":
            values = values[:-1]
        if len(values) > len(schema.columns):
            logger.debug(
                "DATA row has %d values for %d columns, extra values ignored",
                len(values), len(schema.columns),
            )
        rows.append({
            col: values[i] if i < len(values) else ""
            for i, col in enumerate(schema.columns)
        })
    return rows


def parse_compact(body: str) -> list[RawRecord]:
    """Parse a COMPACT-DECODED body into raw records.

    A body without a usable header yields [] and a logged anomaly.
    """
    schema = scan_header(body)
    if schema is None:
        logger.warning("Malformed search response: no usable COLUMNS header")
        return []
    return scan_rows(body, schema)


def _iter_blocks(body: str, tag: str) -> Iterator[str | None]:
    """Yield the text inside each ``<TAG>...</TAG>``, or None if unterminated.

    Iteration stops after the first unterminated block.
    """
    open_re = re.compile(rf"<{tag}>", re.IGNORECASE)
    close_re = re.compile(rf"</{tag}>", re.IGNORECASE)
    pos = 0
    while True:
        opened = open_re.search(body, pos)
        if opened is None:
            return
        closed = close_re.search(body, opened.end())
        if closed is None:
            yield None
            return
        yield body[opened.end():closed.start()]
        pos = closed.end()
