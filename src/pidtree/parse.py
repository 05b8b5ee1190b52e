# Filename: src/pidtree/parse.py
"""
Parses process listing output into rows keyed by normalized column names.

Two formats are understood:
- the whitespace table printed by ``ps`` (header line, then one process per line)
- the CSV printed by PowerShell's ``ConvertTo-Csv`` (quoted header row first)

Every row is a dict with the keys COMMAND, PPID, PID and STAT, all strings.
"""

import logging
from collections.abc import Iterable, Iterator
from typing import Optional

import pyparsing as pp

from pidtree.log import TRACE_LEVEL_NUM

log = logging.getLogger(__name__)

ProcessRow = dict[str, str]

SEPARATOR = "----"

# Windows and Darwin column names mapped to the Linux ps names
HEADER_ALIASES = {
    "Name": "COMMAND",
    "COMM": "COMMAND",
    "ParentProcessId": "PPID",
    "ProcessId": "PID",
    "Status": "STAT",
}


# --- Grammar: ps table rows ---
# PPID and PID are digits followed by whitespace; STAT is one token;
# COMMAND keeps its spaces.
pid_number = pp.Regex(r"\d+(?=\s)")
table_row = (
    pid_number("PPID")
    + pid_number("PID")
    + pp.Regex(r"\S+")("STAT")
    + pp.Regex(r"\S.*")("COMMAND")
    + pp.StringEnd()
)
table_row.parse_with_tabs()

# --- Grammar: CSV rows ---
# A double quote toggles quoting; commas only split outside quotes. Quote
# characters are dropped and there are no escaped quotes, so an unterminated
# quote runs to the end of the line. Whitespace is never skipped.
csv_field = pp.Regex(r'(?:"[^"]*"?|[^,"])*').set_parse_action(
    lambda t: t[0].replace('"', "")
)
csv_line = (
    csv_field + pp.ZeroOrMore(pp.Suppress(",") + csv_field) + pp.StringEnd()
).leave_whitespace()
csv_line.parse_with_tabs()


def normalize_header(name: str) -> str:
    """Maps a platform specific column name to its canonical form."""
    return HEADER_ALIASES.get(name, name)


def is_separator(line: str) -> bool:
    """True for the dashed rule lines some listing formats print."""
    return SEPARATOR in line


def parse_csv_line(line: str) -> list[str]:
    """Splits one CSV line into its field values."""
    return list(csv_line.parse_string(line, parse_all=True))


def parse_table_line(line: str) -> list[str]:
    """
    Splits one ``ps`` data line into PPID, PID, STAT and COMMAND.

    Returns an empty list if the line doesn't have that shape.
    """
    try:
        parsed = table_row.parse_string(line.strip(), parse_all=True)
    except pp.ParseException:
        return []
    return [parsed["PPID"], parsed["PID"], parsed["STAT"], parsed["COMMAND"]]


class ListingParser:
    """
    Turns the lines of one listing snapshot into rows.

    The first non-empty, non-separator line is taken as the header; every
    later line is mapped against it by position. Create a new parser for
    each listing.
    """

    def __init__(self, csv_format: bool):
        self.csv_format = csv_format
        self.headers: Optional[list[str]] = None
        self.dropped = 0

    def _split_header(self, line: str) -> list[str]:
        if self.csv_format:
            return parse_csv_line(line)
        return line.split()

    def _split_columns(self, line: str) -> list[str]:
        if self.csv_format:
            return parse_csv_line(line)
        return parse_table_line(line)

    def feed(self, line: str) -> Optional[ProcessRow]:
        """Parses one line, returning a row or None if it produced none."""
        trimmed = line.strip()
        if not trimmed or is_separator(trimmed):
            return None

        if self.headers is None:
            self.headers = [normalize_header(h) for h in self._split_header(trimmed)]
            log.debug(f"Listing headers: {self.headers}")
            return None

        columns = self._split_columns(trimmed)
        if len(columns) < len(self.headers):
            self.dropped += 1
            log.log(TRACE_LEVEL_NUM, f"Dropping malformed listing line: {trimmed!r}")
            return None

        return {
            header: columns[i] if i < len(columns) else ""
            for i, header in enumerate(self.headers)
        }


def parse_listing(lines: Iterable[str], csv_format: bool) -> Iterator[ProcessRow]:
    """
    Lazily parses listing output lines into rows.

    Malformed lines are dropped, never raised.
    """
    parser = ListingParser(csv_format)
    count = 0
    for line in lines:
        row = parser.feed(line)
        if row is not None:
            count += 1
            yield row
    log.debug(f"Parsed {count} rows, dropped {parser.dropped} malformed lines")
