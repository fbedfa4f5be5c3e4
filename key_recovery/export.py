"""Writers and comparisons for recovered translation tables."""
import csv
import os
from typing import Dict, List, Mapping, Sequence, Set, Tuple

from key_recovery.reconcile import is_missing_key


def check_key_coverage(prior_keys: Sequence[str], recovered_keys: Sequence[str]) -> Tuple[Set[str], Set[str]]:
    """
    Compare recovered keys against the keys of a prior export.

    Returns:
        A tuple containing two sets:
        - missing_keys: Keys in the prior export that were not recovered.
        - extra_keys: Recovered keys that the prior export does not have.
    """
    prior = set(prior_keys)
    recovered = {key for key in recovered_keys if not is_missing_key(key)}
    return prior - recovered, recovered - prior


def drop_duplicate_rows(keys: Sequence[str], columns: Sequence[Sequence[str]]) -> Tuple[List[str], List[List[str]]]:
    """Keep only the first row for each key; ``columns`` are per-locale message lists aligned with ``keys``."""
    seen: Set[str] = set()
    kept_keys: List[str] = []
    kept_columns: List[List[str]] = [[] for _ in columns]
    for idx, key in enumerate(keys):
        if key in seen:
            continue
        seen.add(key)
        kept_keys.append(key)
        for column, kept in zip(columns, kept_columns):
            kept.append(column[idx] if idx < len(column) else '')
    return kept_keys, kept_columns


def order_by_prior_export(
        keys: Sequence[str],
        columns: Sequence[Sequence[str]],
        prior_keys: Sequence[str]
) -> Tuple[List[str], List[List[str]]]:
    """
    Reorder rows to follow a prior export.

    Keys of the prior export come first, in its order (with empty messages
    if they no longer exist); keys new to this export follow in their
    original order.
    """
    index = {key: idx for idx, key in enumerate(keys)}
    ordered_keys: List[str] = []
    ordered_columns: List[List[str]] = [[] for _ in columns]
    placed: Set[str] = set()
    for key in prior_keys:
        if key in placed:
            continue
        placed.add(key)
        ordered_keys.append(key)
        idx = index.get(key)
        for column, ordered in zip(columns, ordered_columns):
            ordered.append(column[idx] if idx is not None else '')
    for idx, key in enumerate(keys):
        if key in placed:
            continue
        placed.add(key)
        ordered_keys.append(key)
        for column, ordered in zip(columns, ordered_columns):
            ordered.append(column[idx])
    return ordered_keys, ordered_columns


def build_diff_columns(
        keys: Sequence[str],
        new_messages: Mapping[str, str],
        old_messages: Mapping[str, str]
) -> Dict[str, List[str]]:
    """
    Per-key change flags between a prior export and this one.

    Returns:
        Columns ``old``, ``is_add``, ``is_update`` and ``is_remove``, aligned
        with ``keys``; flags are ``"1"`` or empty.
    """
    diff: Dict[str, List[str]] = {'old': [], 'is_add': [], 'is_update': [], 'is_remove': []}
    for key in keys:
        new = new_messages.get(key, '')
        old = old_messages.get(key, '')
        diff['old'].append(old)
        diff['is_add'].append('1' if new and not old else '')
        diff['is_update'].append('1' if new and old and new != old else '')
        diff['is_remove'].append('1' if old and not new else '')
    return diff


def write_translation_csv(
        output_path: str,
        header: Sequence[str],
        keys: Sequence[str],
        columns: Sequence[Sequence[str]]
) -> None:
    """
    Write a translation CSV: one row per key, one column per locale.

    The file starts with a UTF-8 BOM so spreadsheet tools detect the
    encoding. Columns shorter than ``keys`` are padded with empty cells.
    """
    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8-sig', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for idx, key in enumerate(keys):
            writer.writerow([key] + [column[idx] if idx < len(column) else '' for column in columns])
