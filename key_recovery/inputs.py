"""Loaders for the files a recovery pass is fed from."""
import csv
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

logger = logging.getLogger(__name__)


def _has_unescaped_trailing_backslash(s: str) -> bool:
    """Check if a string ends with an odd number of backslashes."""
    stripped = s.rstrip('\\')
    return (len(s) - len(stripped)) % 2 == 1


def _find_separator(line: str) -> int:
    """Index of the first unescaped ':' or '=', or -1."""
    for j, char in enumerate(line):
        if char in (':', '='):
            backslash_count = 0
            k = j - 1
            while k >= 0 and line[k] == '\\':
                backslash_count += 1
                k -= 1
            if backslash_count % 2 == 0:
                return j
    return -1


_VALUE_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', 'f': '\f'}
_VALUE_ESCAPE_RE = re.compile(r'\\(u[0-9a-fA-F]{4}|.)', re.DOTALL)


def _unescape_value(value: str) -> str:
    """Decode \\n, \\t, \\r, \\f and \\uXXXX; any other escaped character stands for itself."""
    def replace(match):
        escape = match.group(1)
        if len(escape) == 5:
            return chr(int(escape[1:], 16))
        return _VALUE_ESCAPES.get(escape, escape)
    return _VALUE_ESCAPE_RE.sub(replace, value)


def load_properties_table(file_path: str) -> Dict[str, str]:
    """
    Parse a .properties file into an ordered key -> message dict.

    Handles comments, escaped separators in keys, backslash line
    continuations and the usual value escapes (\\t, \\n, \\uXXXX and so
    on). Used as the compiled table a recovery pass probes against.

    Args:
        file_path: The path to the .properties file.

    Returns:
        Dict[str, str]: Messages by key, in file order.
    """
    with open(file_path, 'r', encoding='utf-8') as file:
        lines = file.read().splitlines()

    table: Dict[str, str] = {}
    i = 0
    while i < len(lines):
        line = lines[i]
        stripped_line = line.lstrip()
        i += 1
        if not stripped_line or stripped_line.startswith(('#', '!')):
            continue

        sep_index = _find_separator(line)
        if sep_index == -1:
            key_raw, value = line, ''
        else:
            key_raw, value = line[:sep_index], line[sep_index + 1:].lstrip()

        while _has_unescaped_trailing_backslash(value) and i < len(lines):
            value = value[:-1] + lines[i].lstrip()
            i += 1

        key = re.sub(r'\\([:=\s])', r'\1', key_raw.strip())
        if key:
            table[key] = _unescape_value(value)
    return table


def _read_lines(file_path: str) -> List[str]:
    with open(file_path, 'r', encoding='utf-8-sig') as f:
        return [line.rstrip('\r\n') for line in f]


def read_resource_strings(file_paths: Iterable[str]) -> List[str]:
    """Candidate strings, one per non-empty line, from every file."""
    strings: List[str] = []
    for path in file_paths:
        lines = [line for line in _read_lines(path) if line.strip()]
        logger.debug("Read %d resource strings from '%s'", len(lines), path)
        strings.extend(lines)
    return strings


def read_hint_file(file_path: str) -> List[str]:
    """Keys listed one per line; blank lines are skipped."""
    return [line for line in _read_lines(file_path) if line]


def read_previous_keys(file_path: str) -> List[str]:
    return [line.strip() for line in _read_lines(file_path) if line.strip()]


@dataclass
class PriorExport:
    """A CSV produced by an earlier export: ``key,<locale>,<locale>...``."""
    header: List[str]
    rows: List[List[str]] = field(default_factory=list)

    @property
    def keys(self) -> List[str]:
        return [row[0] for row in self.rows]

    @property
    def locales(self) -> List[str]:
        return [locale for locale in self.header[1:] if locale and not locale.startswith('_')]

    def column(self, locale: str) -> Dict[str, str]:
        """Messages of one locale column by key."""
        idx = self.header.index(locale)
        return {row[0]: row[idx] if idx < len(row) else '' for row in self.rows}


def read_prior_export(file_path: str) -> PriorExport:
    with open(file_path, 'r', encoding='utf-8-sig', newline='') as f:
        reader = csv.reader(f)
        header = next(reader, [])
        rows = [row for row in reader if len(row) > 1 and row[0]]
    logger.debug("Read %d rows from prior export '%s'", len(rows), file_path)
    return PriorExport(header=header, rows=rows)
