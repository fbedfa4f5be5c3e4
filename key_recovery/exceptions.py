"""Exceptions raised by the key recovery engine and its collaborators."""


class RecoveryError(Exception):
    """Raised when a recovery pass cannot run at all (missing inputs)."""


class KeyCollisionError(RecoveryError):
    """Raised in strict mode when one recovered key is claimed by two different messages."""

    def __init__(self, key: str, message: str, other_message: str):
        self.key = key
        self.message = message
        self.other_message = other_message
        super().__init__(
            f"Key '{key}' matched message '{message}' but is already used for message '{other_message}'"
        )


class ConfigError(Exception):
    """Raised when a configuration file does not match the expected schema."""
