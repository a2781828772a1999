from __future__ import annotations

from abc import ABC, abstractmethod

from tangen.models import TextItem


class MarketDataProvider(ABC):
    @abstractmethod
    async def get_closes(self, symbol: str, period: str) -> list[float | None]:
        """Daily closing prices for ``symbol`` over ``period`` ("1mo", "5y")."""
        raise NotImplementedError


class SignalProvider(ABC):
    signal_type: str = "signal"

    @abstractmethod
    async def fetch_items(self, symbol: str) -> list[TextItem]:
        raise NotImplementedError
