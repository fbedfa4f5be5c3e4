"""
The table of recovered keys and the statistics derived from it.

Every admission, whichever probe produced the candidate, goes through
:meth:`KeyTable.try_admit`. The classification flags are plain attributes:
they only ever move in one direction (downgrade on a counterexample, or a
single force-set on majority evidence), so probes may read them without
taking the lock.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Set

from key_recovery.lexical import ALL_PUNCTUATION, chars_in_set, has_whitespace, is_all_lower, is_all_upper, is_ascii

logger = logging.getLogger(__name__)


@dataclass
class StageTally:
    """Keys admitted while one stage was running."""
    name: str
    keys_found: int
    keys: List[str] = field(default_factory=list)


class KeyTable:
    """Concurrently built mapping of recovered key -> message."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, str] = {}
        self._covered_messages: Set[str] = set()

        self.keys_have_whitespace = False
        self.keys_are_all_upper = True
        self.keys_are_all_lower = True
        self.keys_are_all_ascii = True
        self._majority_applied = False

        self.upper_count = 0
        self.lower_count = 0
        self.ascii_count = 0
        self.max_key_len = 0
        self.punctuation: Set[str] = set()

        self._stage_count = 0
        self._stage_keys: List[str] = []

    def try_admit(self, key: str, message: str) -> bool:
        """
        Record that ``key`` maps to ``message``.

        Returns:
            False for an empty key, True otherwise. An already present key is
            left untouched (first writer wins).
        """
        if not key:
            return False
        with self._lock:
            if key in self._entries:
                return True
            self._update_stats(key)
            self._entries[key] = message
            self._covered_messages.add(message)
        return True

    def _update_stats(self, key: str) -> None:
        self._stage_count += 1
        self._stage_keys.append(key)
        if not self.keys_have_whitespace and has_whitespace(key):
            self.keys_have_whitespace = True
        if is_all_upper(key):
            self.upper_count += 1
        else:
            self.keys_are_all_upper = False
        if is_all_lower(key):
            self.lower_count += 1
        else:
            self.keys_are_all_lower = False
        if is_ascii(key):
            self.ascii_count += 1
        else:
            self.keys_are_all_ascii = False
        if len(key) > self.max_key_len:
            self.max_key_len = len(key)
        self.punctuation.update(chars_in_set(key, ALL_PUNCTUATION))

    def force_flags_from_majority(self, ratio: float = 0.9) -> bool:
        """
        Lock the case/ASCII flags to True when more than ``ratio`` of the
        keys found so far agree. Only ever applied once per table.

        Returns:
            True if any flag changed.
        """
        with self._lock:
            if self._majority_applied or not self._entries:
                return False
            self._majority_applied = True
            total = len(self._entries)
            changed = False
            if not self.keys_are_all_upper and self.upper_count / total > ratio:
                self.keys_are_all_upper = True
                changed = True
            elif not self.keys_are_all_lower and self.lower_count / total > ratio:
                self.keys_are_all_lower = True
                changed = True
            if not self.keys_are_all_ascii and self.ascii_count / total > ratio:
                self.keys_are_all_ascii = True
                changed = True
        if changed:
            logger.debug(
                "Forced key classification from majority: upper=%s lower=%s ascii=%s",
                self.keys_are_all_upper, self.keys_are_all_lower, self.keys_are_all_ascii
            )
        return changed

    @property
    def flags_locked(self) -> bool:
        return self.keys_are_all_upper and self.keys_are_all_lower and self.keys_are_all_ascii

    def end_stage(self, name: str) -> StageTally:
        with self._lock:
            tally = StageTally(name=name, keys_found=self._stage_count, keys=self._stage_keys)
            self._stage_count = 0
            self._stage_keys = []
        return tally

    def covers(self, messages: Iterable[str]) -> bool:
        """True when every message has at least one admitted key."""
        with self._lock:
            return all(message in self._covered_messages for message in messages)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def punctuation_snapshot(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self.punctuation)

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
