from __future__ import annotations

from typing import Iterable

from tangen.models import Recommendation


def rank_recommendations(recs: Iterable[Recommendation | None]) -> list[Recommendation]:
    ranked = [r for r in recs if r is not None]
    ranked.sort(key=lambda x: x.score, reverse=True)
    return ranked
