"""
Orchestrates a key recovery pass.

Stages run strictly one after the other on the calling thread; only the
work inside a stage is spread over the worker pool. Between stages the
orchestrator refreshes the candidate pools and takes a new probe context
from what the key table has learned so far. Every stage is skipped once
each target message has a key, and a stage timeout ends the pass early
with whatever was found.
"""
import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence

from key_recovery.app_config import RecoveryConfig
from key_recovery.candidate_store import CandidateStore
from key_recovery.exceptions import RecoveryError
from key_recovery.key_table import KeyTable
from key_recovery.lexical import STANDARD_SUFFIXES, find_common_affixes, find_common_prefix, strip_numeric_suffix
from key_recovery.message_source import MessageSource
from key_recovery.probes import CustomProbe, ProbeSet, StageContext, build_word_regex
from key_recovery.reconcile import reconcile
from key_recovery.stage_executor import ProgressCallback, StageExecutor

logger = logging.getLogger(__name__)

# Stages that found more keys than this only log a count.
MAX_LOGGED_STAGE_KEYS = 50


@dataclass
class StageSummary:
    name: str
    completed: bool
    elapsed_ms: float
    keys_found: int
    keys: List[str] = field(default_factory=list)


@dataclass
class RecoveryResult:
    keys: List[str]
    missing_count: int
    total: int
    stages: List[StageSummary]
    timed_out: bool = False

    @property
    def recovered(self) -> int:
        return self.total - self.missing_count

    def needs_resave(self, threshold: float) -> bool:
        """True when too many keys are missing to trust the recovered table over the compiled one."""
        return self.missing_count > self.total * threshold


class KeyRecoveryEngine:
    """
    Recover the keys of a compiled, key-stripped translation table.

    Args:
        source: Lookup oracle over the compiled table.
        messages: The messages to find keys for, in output order.
        resource_strings: Candidate text harvested from the project.
        previous_keys: Keys recovered for other tables in the same session.
        hint_keys: Keys listed in a user-supplied hint file.
        prior_export_keys: Keys from a previous export of this table.
        config: Engine tuning; defaults to :class:`RecoveryConfig`.
        executor: Worker pool for parallel stages. When None, the engine
            creates a ThreadPoolExecutor for the duration of :meth:`run`.
        custom_probes: Extra probes, each called once with the
            :class:`ProbeSet` after the direct-candidate stages.
        progress_callback: Called as ``(stage_name, done, total)`` while a
            stage is running.
    """

    def __init__(
            self,
            source: MessageSource,
            messages: Sequence[str],
            resource_strings: Iterable[str] = (),
            previous_keys: Iterable[str] = (),
            hint_keys: Iterable[str] = (),
            prior_export_keys: Iterable[str] = (),
            config: Optional[RecoveryConfig] = None,
            executor: Optional[Executor] = None,
            custom_probes: Sequence[CustomProbe] = (),
            progress_callback: Optional[ProgressCallback] = None
    ):
        if source is None:
            raise RecoveryError("A message source is required to recover keys.")
        if not messages:
            raise RecoveryError("No default messages were supplied; cannot recover keys.")
        self.source = source
        self.messages = list(messages)
        self.resource_strings = list(resource_strings)
        self.previous_keys = sorted(set(previous_keys))
        self.hint_keys = [k for k in hint_keys if k]
        self.prior_export_keys = [k for k in prior_export_keys if k]
        self.config = config or RecoveryConfig()
        self.executor = executor
        self.custom_probes = list(custom_probes)
        self.progress_callback = progress_callback

        # unique messages, first-seen order
        self._targets = list(dict.fromkeys(self.messages))
        self.table: Optional[KeyTable] = None
        self.store: Optional[CandidateStore] = None
        self.probes: Optional[ProbeSet] = None
        self._stage_executor: Optional[StageExecutor] = None
        self._summaries: List[StageSummary] = []
        self._stage_started = 0.0

    def run(self) -> RecoveryResult:
        """Run every stage (until resolved or timed out) and reconcile the result."""
        if self.executor is not None:
            return self._run(self.executor)
        with ThreadPoolExecutor(max_workers=self.config.workers, thread_name_prefix="key-probe") as pool:
            return self._run(pool)

    def _run(self, pool: Executor) -> RecoveryResult:
        config = self.config
        self.table = KeyTable()
        self.store = CandidateStore(self.resource_strings, self.table)
        self._stage_executor = StageExecutor(
            pool,
            workers=config.workers,
            timeout_ms=config.stage_timeout_ms,
            poll_interval_ms=config.poll_interval_ms,
            report_interval_ms=config.report_interval_ms,
            show_progress=config.show_progress,
            progress_callback=self.progress_callback
        )
        self.probes = ProbeSet(self.source, self.table, self._stage_executor.cancel)
        self._summaries = []

        start = time.monotonic()
        self._stage_started = start
        completed = self._run_stages()
        if not completed:
            logger.warning("Key search stopped early after a stage timeout; reconciling partial results.")

        keys, missing = reconcile(self.messages, self.table.snapshot().items(), strict=config.strict_duplicates)
        result = RecoveryResult(
            keys=keys,
            missing_count=missing,
            total=len(self.messages),
            stages=self._summaries,
            timed_out=not completed
        )
        self._log_summary(result, (time.monotonic() - start) * 1000.0)
        return result

    def resolved(self) -> bool:
        return self.table.covers(self._targets)

    def _close_stage(self, name: str, completed: bool = True) -> None:
        now = time.monotonic()
        tally = self.table.end_stage(name)
        self._summaries.append(StageSummary(
            name=name,
            completed=completed,
            elapsed_ms=(now - self._stage_started) * 1000.0,
            keys_found=tally.keys_found,
            keys=tally.keys
        ))
        self._stage_started = now

    def _stage(self, name: str, probe_fn: Callable, items: Sequence, parallel: bool = True) -> bool:
        result = self._stage_executor.run_stage(name, probe_fn, items, parallel=parallel)
        self._close_stage(name, result.completed)
        return result.completed

    def _set_context(self, **kwargs) -> StageContext:
        self.probes.context = StageContext.build(self.table, self.store, **kwargs)
        return self.probes.context

    def _run_stages(self) -> bool:
        """Returns False if a stage timed out."""
        config = self.config
        table, store, probes = self.table, self.store, self.probes

        seeds = self.hint_keys + self.prior_export_keys
        if seeds and not self._stage("Seed keys", probes.direct_task, seeds, parallel=False):
            return False

        # Stage 1: resource strings as-is, then the messages themselves, then keys from earlier passes
        if not self._stage("Stage 1", probes.direct_task, store.resource_strings):
            return False
        if not self.resolved():
            if not self._stage("Stage 1.25", probes.direct_task, self._targets, parallel=False):
                return False
        if not self.resolved() and self.previous_keys:
            if not self._stage("Stage 1.5", probes.direct_task, self.previous_keys, parallel=False):
                return False
        for custom_probe in self.custom_probes:
            if self.resolved():
                break
            custom_probe(probes)
        if self.custom_probes:
            self._close_stage("Custom probes")

        if len(table) > 1:
            store.common_to_all_prefix = find_common_prefix(table.keys())
            if store.common_to_all_prefix:
                logger.debug("All keys found so far start with '%s'", store.common_to_all_prefix)

        # Stage 2: words inside resource strings
        if not self.resolved():
            punctuation = table.punctuation_snapshot()
            if not table.keys_have_whitespace or len(punctuation) <= 1:
                word_regex = build_word_regex(punctuation, store.common_to_all_prefix, table.keys_have_whitespace)
                self._set_context(word_regex=word_regex)
                if not self._stage("Stage 2", probes.word_task, store.resource_strings):
                    return False
            else:
                logger.debug("Skipping Stage 2: keys contain whitespace and several separators.")

        # Stage 3: plausible key fragments combined with standard field-name suffixes
        if not self.resolved():
            count = store.refilter()
            if count > config.max_filtered_strings and not table.flags_locked:
                table.force_flags_from_majority(config.majority_ratio)
                count = store.refilter()
            logger.debug("%d resource strings survived filtering.", count)
            standard = sorted(store.sanitized_strings(STANDARD_SUFFIXES), key=lambda s: (-len(s), s))
            store.merge(store.sanitized_message_strings(self._targets))
            store.merge(standard)
            store.common_prefixes = list(standard)
            store.common_suffixes = list(standard)
            self._set_context()
            if not self._stage("Stage 3", probes.affix_task, list(store.filtered)):
                return False

        # Stage 3.5: enumerated keys, using the zero padding seen in the pool
        if not self.resolved():
            stripped = {strip_numeric_suffix(s) for s in store.filtered}
            items = sorted((pair for pair in stripped if pair[1] is not None), key=lambda p: (p[0], p[1]))
            self._set_context()
            if not self._stage("Stage 3.5", probes.numeric_strip_task, items):
                return False

        # Stage 4: affixes learned from the keys found so far
        if config.enable_stage_4 and not self.resolved():
            if not self._run_stage_4():
                return False
        return True

    def _run_stage_4(self) -> bool:
        config = self.config
        table, store, probes = self.table, self.store, self.probes

        current_keys = sorted(table.keys())
        store.common_prefixes, store.common_suffixes = find_common_affixes(
            current_keys, table.punctuation_snapshot(), config.affix_threshold
        )
        logger.debug("Discovered %d common prefixes and %d common suffixes.",
                     len(store.common_prefixes), len(store.common_suffixes))

        middles = store.extract_middles(list(store.filtered))
        middles += store.extract_middles(current_keys)
        middles += store.sanitized_message_strings(self._targets)
        store.merge(middles)
        ctx = self._set_context()

        def pair_task(prefix: str) -> None:
            if probes.cancel.is_set():
                return
            for suffix in ctx.suffixes:
                probes.try_key_suffix(prefix, suffix)
                probes.try_num_suffix(prefix, suffix)

        if not self._stage("Stage 4 (affix pairs)", pair_task, list(ctx.prefixes), parallel=False):
            return False

        if len(store.filtered) > config.max_filtered_strings:
            logger.debug("Skipping Stage 4 pool probe: %d candidates exceed the limit of %d.",
                         len(store.filtered), config.max_filtered_strings)
            return True
        if not self._stage("Stage 4", probes.affix_task, list(store.filtered)):
            return False

        # Stage 5: every filtered string as a suffix of every other one
        if config.enable_stage_5 and not self.resolved():
            self._set_context(with_pool=True)
            if not self._stage("Stage 5", probes.cross_task, list(store.filtered)):
                return False
        return True

    def _log_summary(self, result: RecoveryResult, elapsed_ms: float) -> None:
        logger.debug("Key guessing took %.0fms", elapsed_ms)
        for idx, stage in enumerate(result.stages):
            logger.debug("%s took %.0fms, found %d keys", stage.name, stage.elapsed_ms, stage.keys_found)
            if idx >= 2 and stage.keys_found:
                if stage.keys_found < MAX_LOGGED_STAGE_KEYS:
                    for key in stage.keys:
                        logger.debug("* Key found in %s: %s", stage.name, key)
                else:
                    logger.debug("*** %s found a LOT of keys", stage.name)
        if self.probes.successful_prefixes:
            logger.debug("Successful prefixes: %s", sorted(self.probes.successful_prefixes))
        if self.probes.successful_suffixes:
            logger.debug("Successful suffixes: %s", sorted(self.probes.successful_suffixes))
        logger.info("Total found: %d/%d", result.recovered, result.total)
