from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from app.models.guideline import Guideline

MIN_SCORE = 0.0
MAX_SCORE = 100.0


def clamp_score(value: float) -> float:
    """Política única de acotado: todos los puntajes viven en [0, 100]."""
    return max(MIN_SCORE, min(MAX_SCORE, float(value)))


@dataclass
class ContextMessage:
    """Mensaje de la ventana de contexto reciente (sólo lectura)."""
    role: str
    content: str
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ConversationFlowRule:
    from_category: str
    to_category: str
    boost: float


@dataclass
class MatchScore:
    guideline: Guideline
    score: float
    matched: bool


@dataclass
class HybridMatchScore(MatchScore):
    vector_score: float = 0.0
    text_score: float = 0.0
    hybrid_score: float = 0.0


@dataclass
class SimilarityHit:
    guideline_id: int
    similarity: float


@dataclass
class RankedGuideline:
    """Guideline seleccionada para el turno, con el puntaje ajustado por fatiga."""
    guideline: Guideline
    score: float
    original_score: float
    usage_count: int = 0
    fatigue_multiplier: float = 1.0

    @property
    def id(self) -> Optional[int]:
        return self.guideline.id

    def to_dict(self) -> dict:
        return {
            "id": self.guideline.id,
            "condition": self.guideline.condition,
            "action": self.guideline.action,
            "score": self.score,
            "usage_count": self.usage_count,
        }


@dataclass
class TurnResult:
    guidelines: list[RankedGuideline] = field(default_factory=list)
    detected_category: Optional[str] = None
    strategy: str = "text"
