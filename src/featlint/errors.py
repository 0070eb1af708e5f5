"""
featlint - Error types.

Only configuration problems are errors. Comments that do not match the
magic comment pattern, and files without a syntax tree, are not.
"""

from __future__ import annotations

from typing import Any


class ConfigurationError(Exception):
    """Raised at setup when the configuration cannot be used."""
    def __init__(self, message: str, value: Any = None):
        self.value = value
        self.message = message
        if value is not None:
            super().__init__(f"Configuration error: {message} (got {value!r})")
        else:
            super().__init__(f"Configuration error: {message}")
