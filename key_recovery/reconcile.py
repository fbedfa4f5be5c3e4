"""Final assignment of recovered keys to the ordered message sequence."""
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Sequence, Tuple

from key_recovery.exceptions import KeyCollisionError
from key_recovery.lexical import MISSING_KEY_PREFIX

logger = logging.getLogger(__name__)


def missing_key(message: str) -> str:
    """Placeholder key for a message whose key could not be recovered."""
    first_line = message.split('\n')[0]
    return f"{MISSING_KEY_PREFIX}{first_line}>"


def is_missing_key(key: str) -> bool:
    return key.startswith(MISSING_KEY_PREFIX)


def reconcile(
        messages: Sequence[str],
        entries: Iterable[Tuple[str, str]],
        strict: bool = False
) -> Tuple[List[str], int]:
    """
    Pick one key per message, in message order.

    A message takes the first (in sorted order) matching key not yet used
    by an earlier message. When every matching key is already used, the key
    is reused: silently if it was used for the same text (a legitimate
    duplicate), with a warning otherwise. Messages without any matching key
    get a placeholder from :func:`missing_key`.

    Args:
        messages: The target messages, duplicates allowed.
        entries: Recovered (key, message) pairs. A key normally appears once,
            but merged tables may list it for more than one message.
        strict: Raise :class:`KeyCollisionError` instead of warning when a
            key is reused for a different message.

    Returns:
        (keys, missing_count); ``keys`` has the same length and order as
        ``messages``.
    """
    keys_by_message: Dict[str, List[str]] = defaultdict(list)
    for key, message in entries:
        keys_by_message[message].append(key)
    for candidates in keys_by_message.values():
        candidates.sort()

    used_for: Dict[str, str] = {}
    keys: List[str] = []
    missing = 0
    for message in messages:
        candidates = keys_by_message.get(message)
        if not candidates:
            logger.debug("Could not find key for message '%s'", message)
            keys.append(missing_key(message))
            missing += 1
            continue

        chosen = next((key for key in candidates if key not in used_for), None)
        if chosen is None:
            chosen = candidates[-1]
            previous = used_for[chosen]
            if previous == message:
                logger.debug("Found duplicate key '%s' for message '%s'", chosen, message)
            elif strict:
                raise KeyCollisionError(chosen, message, previous)
            else:
                logger.warning(
                    "Found matching key '%s' for message '%s' but key is used for message '%s'",
                    chosen, message, previous
                )
        used_for.setdefault(chosen, message)
        keys.append(chosen)
    return keys, missing
