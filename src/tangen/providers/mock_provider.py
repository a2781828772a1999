from __future__ import annotations

from tangen.models import NEWS, TextItem
from tangen.providers.base import MarketDataProvider, SignalProvider


def _seed(symbol: str) -> int:
    return sum(ord(ch) for ch in symbol)


class MockMarketDataProvider(MarketDataProvider):
    async def get_closes(self, symbol: str, period: str) -> list[float | None]:
        seed = _seed(symbol)
        points = 22 if period == "1mo" else 60
        drift = ((seed % 7) - 3) * 0.004
        price = 20.0 + seed % 180
        out: list[float | None] = []
        for i in range(points):
            wiggle = 0.01 if i % 2 == 0 else -0.008
            price = price * (1 + drift + wiggle)
            out.append(round(price, 4))
        return out


class MockSignalProvider(SignalProvider):
    POSITIVE = [
        "{symbol} reports strong quarterly profit growth",
        "Analysts see promising gains for {symbol} as margins improved",
    ]
    NEGATIVE = [
        "{symbol} shares falling after weak guidance and rising risk",
        "Revenue decline leaves {symbol} with a loss this quarter",
    ]

    def __init__(self, signal_type: str = NEWS) -> None:
        self.signal_type = signal_type

    async def fetch_items(self, symbol: str) -> list[TextItem]:
        templates = self.POSITIVE if _seed(symbol) % 2 == 0 else self.NEGATIVE
        return [
            TextItem(
                text=t.format(symbol=symbol),
                source=self.signal_type,
                title=f"{symbol} update {i + 1}",
                url=f"https://example.invalid/{self.signal_type}/{symbol.lower()}/{i}",
            )
            for i, t in enumerate(templates)
        ]
