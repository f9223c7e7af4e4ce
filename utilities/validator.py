"""
Field validation helpers.

A Validator collects one error message per field; the first message recorded
for a field wins.
"""

from typing import Dict


class Validator:
    """Accumulates field-level validation errors."""

    def __init__(self):
        self.errors: Dict[str, str] = {}

    def is_empty(self) -> bool:
        """Return True when no errors have been recorded."""
        return len(self.errors) == 0

    def add_error(self, field: str, message: str) -> None:
        """Record an error for a field unless one is already present."""
        if field not in self.errors:
            self.errors[field] = message

    def check(self, acceptable: bool, field: str, message: str) -> None:
        """Record message under field when the condition does not hold."""
        if not acceptable:
            self.add_error(field, message)


def permitted_value(value: str, *permitted_values: str) -> bool:
    """Return True when value is one of permitted_values."""
    return value in permitted_values
