class ConfigInvalid(ValueError):
    """Raised when a configuration file is missing or does not match its schema.

    Attributes:
        violations (list[str]): One entry per violated field, formatted as "dotted.path: message".
    """

    def __init__(self, violations: list[str]):
        self.violations = violations
        super().__init__("Invalid config: " + "; ".join(violations))


class LimitExceeded(ValueError):
    """Raised when a conversation exceeds the configured limits of an output model."""


class FileChangedError(Exception):
    """Raised when a file's live content hash no longer matches the expected hash."""

    def __init__(self, file: str, expected_hash: str, actual_hash: str):
        self.file = file
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(f"File '{file}' changed: expected hash {expected_hash}, got {actual_hash}")


class AuthenticationFailed(Exception):
    """Raised when a request carries no credentials matching a permission grant."""
