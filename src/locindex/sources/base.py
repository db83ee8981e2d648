"""Base source interface — Push rows from a collection to a callback."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

RowCallback = Callable[[dict[str, str]], Awaitable[None]]
"""Receives one row (field name to string value) at a time."""


class Source(ABC):
    """A labeled collection of records (e.g. LCSH or LCNAF).

    Args:
        label: Short name of the collection, stored on every document
            indexed from it.
    """

    def __init__(self, label: str) -> None:
        self.label = label

    @abstractmethod
    async def index(self, callback: RowCallback) -> None:
        """Push every row to ``callback`` until the collection is exhausted.

        Raises:
            Exception: If iterating the collection itself fails. Errors
                raised by ``callback`` propagate unchanged.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(label={self.label!r})"
