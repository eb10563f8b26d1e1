"""Small shared helpers."""

from __future__ import annotations

import re
from typing import Any


class CanceledRequestContextError(Exception):
    """Raised when the client cancels the request."""

    def __init__(self, message: str = "The user canceled the request") -> None:
        super().__init__(message)


def initialize_regexp(configuration: Any) -> re.Pattern[str]:
    """Combine every configured URL pattern into one alternation."""
    return re.compile("|".join(f"({pattern})" for pattern in configuration.urls))