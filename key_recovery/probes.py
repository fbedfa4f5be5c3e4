"""
Candidate key construction strategies.

Every probe builds a candidate key, asks the message source whether that
key exists, and admits it into the key table on a hit. A candidate that
misses is retried upper-cased and lower-cased; multi-part candidates are
also retried with each known punctuation character as a separator.

Probes read their inputs from a :class:`StageContext`, an immutable
snapshot taken by the orchestrator before each stage, so the keys found
by a stage only depend on what was known when the stage started.
"""
import logging
import re
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Pattern, Set, Tuple

from key_recovery.candidate_store import CandidateStore
from key_recovery.key_table import KeyTable
from key_recovery.lexical import format_number
from key_recovery.message_source import MessageSource

logger = logging.getLogger(__name__)

# Upper bound for adaptive numeric widening.
MAX_NUMERIC_SUFFIX = 1 << 16


@dataclass(frozen=True)
class StageContext:
    punctuation: Tuple[str, ...] = ()
    prefixes: Tuple[str, ...] = ()
    suffixes: Tuple[str, ...] = ()
    common_to_all_prefix: str = ''
    word_regex: Optional[Pattern] = None
    pool: Tuple[str, ...] = ()

    @classmethod
    def build(cls, table: KeyTable, store: CandidateStore, word_regex: Optional[Pattern] = None,
              with_pool: bool = False) -> 'StageContext':
        return cls(
            punctuation=tuple(sorted(table.punctuation_snapshot())),
            prefixes=tuple(store.common_prefixes),
            suffixes=tuple(store.common_suffixes),
            common_to_all_prefix=store.common_to_all_prefix,
            word_regex=word_regex,
            pool=tuple(store.filtered) if with_pool else (),
        )


def build_word_regex(punctuation, common_to_all_prefix: str, keys_have_whitespace: bool) -> Pattern:
    """Regex matching runs of word characters and known key punctuation."""
    char_class = '[\\w' + ''.join(re.escape(ch) for ch in sorted(punctuation)) + ']'
    prefix = re.escape(common_to_all_prefix)
    if keys_have_whitespace:
        return re.compile('\\b' + prefix + char_class + '+\\b')
    return re.compile(prefix + char_class + '+')


class ProbeSet:
    """The probe functions for one recovery pass."""

    def __init__(self, source: MessageSource, table: KeyTable, cancel: threading.Event):
        self.source = source
        self.table = table
        self.cancel = cancel
        self.context = StageContext()
        self.successful_prefixes: Set[str] = set()
        self.successful_suffixes: Set[str] = set()

    def _lookup(self, key: str) -> bool:
        message = self.source.message_for(key)
        if message:
            return self.table.try_admit(key, message)
        return False

    def try_key(self, key: str) -> bool:
        """Probe ``key`` as-is, then upper-cased, then lower-cased."""
        if not key:
            return False
        if self._lookup(key):
            return True
        upper = key.upper()
        if upper != key and self._lookup(upper):
            return True
        lower = key.lower()
        return lower != key and lower != upper and self._lookup(lower)

    def try_parts(self, *parts: str) -> bool:
        return self.try_key(''.join(parts))

    def _reg_prefix(self, prefix: str) -> None:
        if prefix:
            self.successful_prefixes.add(prefix)

    def _reg_suffix(self, suffix: str) -> None:
        if suffix:
            self.successful_suffixes.add(suffix)

    def try_key_prefix(self, prefix: str, s: str) -> bool:
        if self.try_parts(prefix, s):
            self._reg_prefix(prefix)
            return True
        for ch in self.context.punctuation:
            if self.try_parts(prefix, ch, s):
                self._reg_prefix(prefix)
                return True
        return False

    def try_key_suffix(self, s: str, suffix: str) -> bool:
        if self.try_parts(s, suffix):
            self._reg_suffix(suffix)
            return True
        for ch in self.context.punctuation:
            if self.try_parts(s, ch, suffix):
                self._reg_suffix(suffix)
                return True
        return False

    def try_key_suffixes(self, s: str, suffix: str, suffix2: str) -> bool:
        """Probe ``s + suffix + suffix2``; separators only go between the two suffixes."""
        if not suffix:
            return self.try_key_suffix(s, suffix2)
        if self.try_parts(s, suffix, suffix2):
            self._reg_suffix(suffix + suffix2)
            return True
        for ch in self.context.punctuation:
            if self.try_parts(s, suffix, ch, suffix2):
                self._reg_suffix(suffix + ch + suffix2)
                return True
        return False

    def try_num_suffix(self, base: str, suffix: str = '', magnitude: Optional[int] = None) -> None:
        """
        Probe ``base + suffix + <number>`` for enumerated keys (Item1..ItemN, Item01..Item99).

        Args:
            base: The leading part of the key.
            suffix: Text between the base and the number.
            magnitude: Zero padding already known for this base (see
                :func:`key_recovery.lexical.strip_numeric_suffix`). When None
                the padding is detected by probing ``1``, ``01``, ``001`` and
                ``0001``.
        """
        authoritative = magnitude is not None
        found_one = self.try_key_suffixes(base, suffix, '1')
        zero_prefix_len = magnitude or 0
        if not authoritative:
            if self.try_key_suffixes(base, suffix, '01'):
                zero_prefix_len = 1
            elif not found_one:
                if self.try_key_suffixes(base, suffix, '001'):
                    zero_prefix_len = 2
                elif self.try_key_suffixes(base, suffix, '0001'):
                    zero_prefix_len = 3
        if not (found_one or zero_prefix_len > 0 or authoritative):
            return

        for token in ('N', 'n', '0'):
            self.try_key_suffixes(base, suffix, token)
        low, high = (0, 10) if authoritative else (2, 4)
        while high <= MAX_NUMERIC_SUFFIX and not self.cancel.is_set():
            hits = 0
            for num in range(low, high):
                if self.try_key_suffixes(base, suffix, format_number(num, zero_prefix_len)):
                    hits += 1
            # keep widening only while more than half of the range exists
            if hits * 2 <= high - low:
                break
            low, high = high, high * 2

    # Stage tasks. Each checks the cancel flag on entry.

    def direct_task(self, s: str) -> None:
        if self.cancel.is_set():
            return
        self.try_key(s)

    def word_task(self, s: str) -> None:
        if self.cancel.is_set():
            return
        ctx = self.context
        if ctx.common_to_all_prefix and ctx.common_to_all_prefix not in s:
            return
        for match in ctx.word_regex.finditer(s):
            self.try_key(match.group(0))

    def affix_task(self, s: str) -> None:
        if self.cancel.is_set():
            return
        self.try_num_suffix(s)
        for suffix in self.context.suffixes:
            self.try_key_suffix(s, suffix)
            self.try_num_suffix(s, suffix)
        for prefix in self.context.prefixes:
            self.try_key_prefix(prefix, s)
            self.try_num_suffix(prefix, s)

    def numeric_strip_task(self, item: Tuple[str, Optional[int]]) -> None:
        if self.cancel.is_set():
            return
        base, magnitude = item
        self.try_num_suffix(base, magnitude=magnitude)

    def cross_task(self, s: str) -> None:
        if self.cancel.is_set():
            return
        for other in self.context.pool:
            self.try_key_suffix(s, other)


CustomProbe = Callable[[ProbeSet], None]
