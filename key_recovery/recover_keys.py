#!/usr/bin/env python3
"""Recover translation keys for a compiled table and write them out as CSV."""
import argparse
import logging
import os
import sys
from typing import List, Optional

from key_recovery.app_config import load_app_config
from key_recovery.engine import KeyRecoveryEngine
from key_recovery.exceptions import ConfigError, RecoveryError
from key_recovery.export import (
    build_diff_columns,
    check_key_coverage,
    drop_duplicate_rows,
    order_by_prior_export,
    write_translation_csv,
)
from key_recovery.inputs import (
    PriorExport,
    load_properties_table,
    read_hint_file,
    read_previous_keys,
    read_prior_export,
    read_resource_strings,
)
from key_recovery.message_source import DictMessageSource

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_TOO_MANY_MISSING = 2


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recover the keys of a key-stripped translation table.")
    parser.add_argument("--source", required=True, help=".properties file standing in for the compiled table.")
    parser.add_argument("--resources", nargs="*", default=[], help="Files of candidate strings, one per line.")
    parser.add_argument("--previous-keys", help="Keys recovered earlier in this session, one per line.")
    parser.add_argument("--hint-file", help="Known keys, one per line.")
    parser.add_argument("--prior-export", help="CSV written by an earlier export of this table.")
    parser.add_argument("--locale", default="en", help="Locale column name for the messages (default: en).")
    parser.add_argument("--output", help="Output CSV path (default: <source>.csv).")
    parser.add_argument("--config", help="YAML configuration file.")
    parser.add_argument("--timeout-ms", type=int, help="Per-stage timeout override.")
    parser.add_argument("--progress", action="store_true", help="Show stage progress bars.")
    return parser.parse_args(argv)


def _diff_path(output_path: str) -> str:
    base, _ = os.path.splitext(output_path)
    return f"{base}_diff_fmt.csv"


def _write_diff(diff_path: str, locale: str, keys: List[str], columns: List[List[str]], prior: PriorExport) -> None:
    """
    Write the ``_diff_fmt.csv`` companion file.

    Rows follow the prior export (vanished keys keep a blank row), then new
    keys. Locales only the prior export has are carried over as extra
    columns, followed by the old message and change flags for ``locale``.
    """
    sorted_keys, sorted_columns = order_by_prior_export(keys, columns, prior.keys)
    add_locales = [name for name in prior.locales if name != locale]
    old_messages = prior.column(locale) if locale in prior.header else {}
    diff = build_diff_columns(sorted_keys, dict(zip(sorted_keys, sorted_columns[0])), old_messages)

    extra_columns = []
    for name in add_locales:
        messages = prior.column(name)
        extra_columns.append([messages.get(key, '') for key in sorted_keys])

    diff_header = ["key", locale] + add_locales + [f"{name}_{locale}" for name in diff]
    write_translation_csv(diff_path, diff_header, sorted_keys, sorted_columns + extra_columns + list(diff.values()))


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    try:
        config = load_app_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED
    if args.timeout_ms:
        config.stage_timeout_ms = args.timeout_ms
    if args.progress:
        config.show_progress = True

    try:
        source = DictMessageSource(load_properties_table(args.source))
        resource_strings = read_resource_strings(args.resources)
        previous_keys = read_previous_keys(args.previous_keys) if args.previous_keys else []
        hint_keys = read_hint_file(args.hint_file) if args.hint_file else []
        prior = read_prior_export(args.prior_export) if args.prior_export else None
    except OSError as e:
        logger.error("Could not read input: %s", e)
        return EXIT_FAILED

    messages = source.messages()
    logger.info("Recovering keys for %d messages from '%s' using %d candidate strings.",
                len(messages), args.source, len(resource_strings))
    try:
        result = KeyRecoveryEngine(
            source,
            messages,
            resource_strings=resource_strings,
            previous_keys=previous_keys,
            hint_keys=hint_keys,
            prior_export_keys=prior.keys if prior else (),
            config=config
        ).run()
    except RecoveryError as e:
        logger.error("Key recovery failed: %s", e)
        return EXIT_FAILED

    keys, columns = drop_duplicate_rows(result.keys, [messages])
    header = ["key", args.locale]
    output_path = args.output or os.path.splitext(args.source)[0] + ".csv"

    write_translation_csv(output_path, header, keys, columns)
    logger.info("Recovered %d of %d keys; wrote '%s'.", result.recovered, result.total, output_path)

    if prior and prior.rows:
        missing_keys, extra_keys = check_key_coverage(prior.keys, keys)
        logger.info("Compared with prior export: %d keys not recovered, %d new keys.",
                    len(missing_keys), len(extra_keys))
        _write_diff(_diff_path(output_path), args.locale, keys, columns, prior)

    if result.needs_resave(config.missing_threshold):
        logger.warning(
            "Could not recover %d keys (more than %.0f%%); keep the compiled table instead of this CSV.",
            result.missing_count, config.missing_threshold * 100
        )
        return EXIT_TOO_MANY_MISSING
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
