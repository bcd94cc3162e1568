from __future__ import annotations

"""Rate provider abstraction.

A provider answers one question: how many units of ``to_currency`` buy one
unit of ``from_currency``. ``None`` means the quote source could not resolve
the pair, which callers treat as a normal condition.
"""
from abc import ABC, abstractmethod
from typing import Optional


class RateProvider(ABC):
    name: str = "abstract"

    @abstractmethod
    def fetch_rate(self, from_currency: str, to_currency: str) -> Optional[float]:
        """Return units of to_currency per 1 from_currency, or None."""
        raise NotImplementedError
