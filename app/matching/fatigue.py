from typing import List, Mapping, Optional, Sequence

from app.matching.models import MatchScore, RankedGuideline


class FatigueAdjuster:
    """
    Decae el puntaje de las guidelines ya usadas en la conversación:
    ``adjusted = score * factor ** usage_count``.
    """

    def __init__(self, fatigue_factor: float = 0.95):
        if not 0 < fatigue_factor < 1:
            raise ValueError(f"fatigue_factor must be in (0, 1), got {fatigue_factor}")
        self.fatigue_factor = fatigue_factor

    def multiplier(self, usage_count: int) -> float:
        return self.fatigue_factor ** max(0, int(usage_count))

    def adjust(self, score: float, usage_count: int) -> float:
        return score * self.multiplier(usage_count)

    def apply(
        self,
        matches: Sequence[MatchScore],
        usage_counts: Optional[Mapping[int, int]] = None,
        limit: Optional[int] = None,
    ) -> List[RankedGuideline]:
        """Ajusta, ordena de mayor a menor y recorta a ``limit`` (si se indica)."""
        usage_counts = usage_counts or {}
        ranked = []
        for match in matches:
            usage_count = int(usage_counts.get(match.guideline.id, 0) or 0)
            multiplier = self.multiplier(usage_count)
            ranked.append(RankedGuideline(
                guideline=match.guideline,
                score=match.score * multiplier,
                original_score=match.score,
                usage_count=usage_count,
                fatigue_multiplier=multiplier,
            ))

        ranked.sort(key=lambda r: r.score, reverse=True)
        return ranked[:limit] if limit is not None else ranked
