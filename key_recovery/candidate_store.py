"""Resource strings harvested from the project and the pools derived from them."""
import logging
from typing import Iterable, List, Sequence

from key_recovery.key_table import KeyTable
from key_recovery.lexical import (
    ALL_PUNCTUATION,
    REMOVABLE_PUNCTUATION,
    has_whitespace,
    is_all_lower,
    is_all_upper,
    is_ascii,
    remove_chars,
    trim_punctuation,
)

logger = logging.getLogger(__name__)

_ESCAPES = {'\n', '\t', '\r', '\b', '\f', '\v', '\a'}


class CandidateStore:
    """
    The candidate corpus for one recovery pass.

    Only the orchestrator mutates a store, and only between stages; probes
    running inside a stage treat it as read-only.
    """

    def __init__(self, resource_strings: Iterable[str], table: KeyTable):
        # sorted so that every pass walks the pool in the same order
        self.resource_strings: List[str] = sorted({s for s in resource_strings if s})
        self.table = table
        self.filtered: List[str] = []
        self.common_prefixes: List[str] = []
        self.common_suffixes: List[str] = []
        self.common_to_all_prefix = ''

    def has_nonstandard_punctuation(self, s: str) -> bool:
        """True if ``s`` holds punctuation (other than spaces) never seen in a key."""
        punctuation = self.table.punctuation
        return any(ch != ' ' and ch in ALL_PUNCTUATION and ch not in punctuation for ch in s)

    def should_filter(self, s: str, ignore_spaces: bool = False) -> bool:
        """Whether ``s`` cannot plausibly be (part of) a key of this project."""
        table = self.table
        if not s:
            return True
        if len(table) and len(s) > table.max_key_len:
            return True
        if self.has_nonstandard_punctuation(s):
            return True
        if not ignore_spaces and not table.keys_have_whitespace and has_whitespace(s):
            return True
        if '://' in s:
            return True
        if self.common_to_all_prefix and not s.startswith(self.common_to_all_prefix):
            return True
        if len(table):
            if table.keys_are_all_upper and not is_all_upper(s):
                return True
            if table.keys_are_all_lower and not is_all_lower(s):
                return True
            if table.keys_are_all_ascii and not is_ascii(s):
                return True
        return False

    def refilter(self) -> int:
        self.filtered = [s for s in self.resource_strings if not self.should_filter(s)]
        return len(self.filtered)

    def sanitized_strings(self, texts: Iterable[str]) -> List[str]:
        """
        Turn free text (messages, field names) into key-shaped fragments.

        Spaces are replaced by each known punctuation character, so
        "Main Menu" with ``_`` known becomes ``Main_Menu``.
        """
        table = self.table
        punctuation = sorted(table.punctuation)
        evidence = len(table) > 0
        results = set()
        for text in texts:
            s = remove_chars(text, REMOVABLE_PUNCTUATION - table.punctuation)
            s = remove_chars(s, _ESCAPES).strip()
            s = trim_punctuation(s, punctuation)
            if not s or self.has_nonstandard_punctuation(s):
                continue
            if evidence:
                if table.keys_are_all_ascii and not is_ascii(s):
                    continue
                if table.keys_are_all_upper:
                    s = s.upper()
                elif table.keys_are_all_lower:
                    s = s.lower()
            if ' ' in s:
                for ch in punctuation:
                    results.add(s.replace(' ', ch))
            else:
                results.add(s)
        return sorted(results)

    def sanitized_message_strings(self, messages: Iterable[str]) -> List[str]:
        """Sanitized messages that are not already in the filtered pool."""
        existing = set(self.filtered)
        return [s for s in self.sanitized_strings(messages) if s not in existing]

    def extract_middles(self, strings: Sequence[str]) -> List[str]:
        """
        Strip known prefixes and suffixes from ``strings`` and return the new
        fragments left in the middle (``Dialog_Main_Title`` -> ``Main``).
        """
        punctuation = sorted(self.table.punctuation)
        seen = set(strings)
        middles: List[str] = []

        def keep(fragment: str) -> bool:
            if not fragment or fragment in seen:
                return False
            seen.add(fragment)
            middles.append(fragment)
            return True

        for s in strings:
            for prefix in self.common_prefixes:
                if len(prefix) != len(s) and s.startswith(prefix):
                    rest = trim_punctuation(s[len(prefix):], punctuation)
                    if not keep(rest):
                        continue
                    for suffix in self.common_suffixes:
                        if len(suffix) != len(rest) and rest.endswith(suffix):
                            keep(trim_punctuation(rest[:-len(suffix)], punctuation))
            for suffix in self.common_suffixes:
                if len(suffix) != len(s) and s.endswith(suffix):
                    keep(trim_punctuation(s[:-len(suffix)], punctuation))
        return middles

    def merge(self, strings: Iterable[str]) -> int:
        """Append unseen strings to the filtered pool; returns how many were added."""
        existing = set(self.filtered)
        added = 0
        for s in strings:
            if s and s not in existing:
                existing.add(s)
                self.filtered.append(s)
                added += 1
        return added
