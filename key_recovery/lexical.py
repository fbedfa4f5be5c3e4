"""
Character-class helpers and corpus affix discovery.

Everything in this module is a pure function over strings. The punctuation
set passed around is the set of characters already observed inside
recovered keys, so "is this punctuation" always means "is this a separator
the keys of this project actually use".
"""
import os
from collections import Counter
from typing import AbstractSet, Iterable, List, Optional, Set, Tuple

ALL_PUNCTUATION = frozenset({
    '.', '!', '?', ',', ';', ':', '(', ')', '[', ']', '{', '}', '<', '>', '/', '\\', '|', '`', '~', '@',
    '#', '$', '%', '^', '&', '*', '-', '_', '+', '=', "'", '"', '\n', '\t', ' ',
})
REMOVABLE_PUNCTUATION = frozenset({'.', '!', '?', ',', ';', ':', '%'})
WHITESPACE = frozenset({' ', '\t', '\n'})

# Field names that commonly finish a UI string key ("MainMenu_Title", "Quit_Button", ...)
STANDARD_SUFFIXES = (
    "Name", "Text", "Title", "Description", "Label", "Button", "Speech", "Tooltip", "Legend", "Body", "Content",
)

MISSING_KEY_PREFIX = "<!MissingKey:"

MAX_COMMON_PREFIX_LEN = 100


def has_whitespace(s: str) -> bool:
    return has_chars_in_set(s, WHITESPACE)


def is_ascii(s: str) -> bool:
    return s.isascii()


def is_all_upper(s: str) -> bool:
    return s.upper() == s


def is_all_lower(s: str) -> bool:
    return s.lower() == s


def chars_in_set(s: str, chars: AbstractSet[str]) -> Set[str]:
    """Return the characters of ``s`` that belong to ``chars``."""
    return {ch for ch in s if ch in chars}


def has_chars_in_set(s: str, chars: AbstractSet[str]) -> bool:
    return any(ch in chars for ch in s)


def remove_chars(s: str, chars: AbstractSet[str]) -> str:
    return ''.join(ch for ch in s if ch not in chars)


def split_multichar(s: str, splitters: AbstractSet[str], allow_empty: bool = False, maxsplit: int = 0) -> List[str]:
    """
    Split ``s`` on any single character of ``splitters``.

    Args:
        s: The string to split.
        splitters: Single characters that act as separators.
        allow_empty: Keep empty parts produced by adjacent separators.
        maxsplit: When > 0, the maximum number of parts returned; the last
            part keeps the unsplit remainder of the string.

    Returns:
        The list of parts, left to right.
    """
    parts: List[str] = []
    current = ''
    i = 0
    while i < len(s):
        ch = s[i]
        if ch in splitters:
            if current or allow_empty:
                parts.append(current)
                current = ''
                if 0 < maxsplit <= len(parts) + 1:
                    i += 1
                    break
        else:
            current += ch
        i += 1
    if i < len(s):
        current += s[i:]
    if current or allow_empty:
        parts.append(current)
    return parts


def trim_punctuation(s: str, punctuation: Iterable[str]) -> str:
    """Strip one leading and one trailing occurrence of each punctuation character."""
    for ch in sorted(punctuation):
        s = s.removesuffix(ch).removeprefix(ch)
    return s


def find_common_prefix(keys: Iterable[str]) -> str:
    """Longest prefix shared by every non-empty key."""
    non_empty = [k for k in keys if k]
    if not non_empty:
        return ''
    return os.path.commonprefix(non_empty)[:MAX_COMMON_PREFIX_LEN]


def _part_spans(s: str, punctuation: AbstractSet[str]) -> List[Tuple[int, int]]:
    """(start, end) of every separator-free part of ``s``."""
    spans = []
    pos = 0
    for part in split_multichar(s, punctuation):
        start = s.index(part, pos)
        pos = start + len(part)
        spans.append((start, pos))
    return spans


def _strip_trailing_number(s: str, punctuation: AbstractSet[str]) -> Optional[str]:
    """``_Item12`` -> ``_Item``; None when ``s`` does not end in a digit."""
    if not s or not s[-1].isdigit():
        return None
    end = len(s)
    while end > 0 and (s[end - 1].isdigit() or s[end - 1] in punctuation):
        end -= 1
    return s[:end] or None


def _affixes_of(s: str, punctuation: AbstractSet[str]) -> Tuple[List[str], List[str]]:
    spans = _part_spans(s, punctuation)
    if not spans:
        return [], []
    n = len(spans)
    prefixes = []
    for i in range(max(1, n - 1)):
        prefixes.append(s[:spans[i][1]])
        if i < n - 1:
            # keep the separator run that follows the part
            prefixes.append(s[:spans[i + 1][0]])
    suffixes = []
    for i in range(n - 1, min(1, n - 1) - 1, -1):
        suffixes.append(s[spans[i][0]:])
        if i > 0:
            suffixes.append(s[spans[i - 1][1]:])
    for suffix in list(suffixes):
        stripped = _strip_trailing_number(suffix, punctuation)
        if stripped:
            suffixes.append(stripped)
    return prefixes, suffixes


def find_common_affixes(
        corpus: Iterable[str],
        punctuation: AbstractSet[str],
        threshold: int = 3
) -> Tuple[List[str], List[str]]:
    """
    Find prefixes and suffixes that recur across a corpus of key-like strings.

    Each string is split on ``punctuation`` and every left-anchored cumulative
    prefix (``Dialog``, ``Dialog_``, ``Dialog_Main``...) and right-anchored
    cumulative suffix is counted once per string. Suffixes ending in digits
    also register their digit-stripped form (``_Item12`` -> ``_Item``).

    Args:
        corpus: Strings to analyse; empty strings are ignored.
        punctuation: Separator characters.
        threshold: Minimum number of corpus strings a fragment must appear in.

    Returns:
        (prefixes, suffixes), each sorted longest first, ties kept in
        first-seen order.
    """
    prefix_counts: Counter = Counter()
    suffix_counts: Counter = Counter()
    for s in corpus:
        if not s:
            continue
        prefixes, suffixes = _affixes_of(s, punctuation)
        prefix_counts.update(dict.fromkeys(p for p in prefixes if p))
        suffix_counts.update(dict.fromkeys(p for p in suffixes if p))

    common_prefixes = [p for p, count in prefix_counts.items() if count >= threshold]
    common_suffixes = [p for p, count in suffix_counts.items() if count >= threshold]
    common_prefixes.sort(key=len, reverse=True)
    common_suffixes.sort(key=len, reverse=True)
    return common_prefixes, common_suffixes


def strip_numeric_suffix(s: str) -> Tuple[str, Optional[int]]:
    """
    Strip a trailing run of digits.

    Returns:
        (base, magnitude) where magnitude is the number of leading zeros in
        the stripped digits (``Item007`` -> ``('Item', 2)``), or None when
        nothing was stripped.
    """
    if len(s) < 2:
        return s, None
    end = len(s)
    while end > 0 and s[end - 1].isdigit():
        end -= 1
    if end == len(s) or end == 0:
        return s, None
    digits = s[end:]
    return s[:end], len(digits) - len(digits.lstrip('0'))


def format_number(num: int, magnitude: int) -> str:
    """Format ``num`` zero-padded to ``magnitude + 1`` digits (no padding for magnitude 0)."""
    if magnitude > 0:
        return f"{num:0{magnitude + 1}d}"
    return str(num)
