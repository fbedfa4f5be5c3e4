"""Lookup oracle over the compiled key -> message table."""
from typing import Dict, List, Mapping, Optional, Protocol


class MessageSource(Protocol):
    """Answers "which message does this key map to?" without listing its keys."""

    def message_for(self, key: str) -> Optional[str]:
        ...


class DictMessageSource:
    """
    A :class:`MessageSource` backed by a plain mapping.

    The mapping is copied, so later edits by the caller cannot change the
    answers given during a recovery pass. Empty messages are reported as
    absent, matching how a compiled table treats untranslated entries.
    """

    def __init__(self, mapping: Mapping[str, str]):
        self._table: Dict[str, str] = dict(mapping)

    def message_for(self, key: str) -> Optional[str]:
        message = self._table.get(key)
        return message or None

    def messages(self) -> List[str]:
        """The non-empty messages, in table order."""
        return [message for message in self._table.values() if message]

    def __len__(self) -> int:
        return len(self._table)
