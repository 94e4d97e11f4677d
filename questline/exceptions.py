"""
Questline exception hierarchy.

- QuestlineError: base for every known error
- ConfigError: bad configuration file
- StateError: stored state is inconsistent or a write is not allowed
- SchemaVersionError: an event was written by a newer schema
- NoValidOccurrence: a recurrence rule produced no next date
"""
from typing import Optional


class QuestlineError(Exception):
    """Base class for expected Questline errors.

    Catching this handles every anticipated failure mode.
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        """
        Args:
            message: What went wrong
            hint: Suggested next step for the user
        """
        super().__init__(message)
        self.message = message
        self.hint = hint

    def get_user_message(self) -> str:
        """Return a user-facing message."""
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class ConfigError(QuestlineError):
    """Raised when a configuration file is missing or malformed."""

    def __init__(self, message: str, config_path: Optional[str] = None):
        hint = f"Check the config file: {config_path}" if config_path else "Check the config file format"
        super().__init__(message, hint)
        self.config_path = config_path


class StateError(QuestlineError):
    """Stored state problem.

    Raised for corrupt records and for writes the store refuses, such as
    rewriting or deleting an event-log entry.
    """

    def __init__(self, message: str, corrupted_data: Optional[str] = None):
        hint = "State may be damaged; run tools/validate_event_replay.py"
        super().__init__(message, hint)
        self.corrupted_data = corrupted_data


class SchemaVersionError(StateError):
    """An event envelope carries a schemaVersion this build cannot read."""

    def __init__(self, schema_version: int, supported: int):
        super().__init__(
            f"Unsupported event schemaVersion {schema_version} (supported: <= {supported})"
        )
        self.schema_version = schema_version
        self.supported = supported
        self.hint = "Upgrade questline or run tools/migrate_event_log_schema.py"


class NoValidOccurrence(QuestlineError):
    """A recurrence rule yielded no occurrence inside the scan bound."""

    def __init__(self, message: str, max_cycles: Optional[int] = None):
        super().__init__(message, hint="Check the weekdays configured on the recurring task")
        self.max_cycles = max_cycles
