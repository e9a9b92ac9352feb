from typing import Iterable, List, Optional, Sequence

from app.matching.context import ContextBonusCalculator
from app.matching.models import ContextMessage, MatchScore, clamp_score
from app.matching.patterns import (
    CONTAINMENT_BONUS,
    PARTIAL_MATCH_MIN_LENGTH,
    PRIORITY_WEIGHT,
    SPANISH_ACTION_WORDS,
    SPANISH_COMMON_WORDS,
    SPANISH_CONDITION_CLEANERS,
    SPANISH_VERB_PATTERNS,
    SYNONYM_BONUS,
    WORD_OVERLAP_WEIGHT,
)
from app.models.guideline import Guideline


class LexicalScorer:
    """
    Relevancia 0-100 entre un mensaje y una guideline mediante heurísticas
    léxicas: verbos, contención, sinónimos, solapamiento de palabras y prioridad.

    Función pura: no guarda estado entre llamadas.
    """

    def __init__(
        self,
        cleaners=SPANISH_CONDITION_CLEANERS,
        verb_patterns=SPANISH_VERB_PATTERNS,
        action_words=SPANISH_ACTION_WORDS,
        stopwords=SPANISH_COMMON_WORDS,
    ):
        self.cleaners = list(cleaners)
        self.verb_patterns = list(verb_patterns)
        self.action_words = tuple(action_words)
        self.stopwords = frozenset(stopwords)

    def canonicalize(self, condition: str) -> str:
        clean = (condition or "").lower()
        for pattern, replacement in self.cleaners:
            clean = pattern.sub(replacement, clean)
        return clean.strip()

    def score(self, message: str, guideline: Guideline) -> float:
        lower_message = (message or "").lower()
        condition = self.canonicalize(guideline.condition)

        if lower_message == condition:
            return 100.0

        score = self._verb_bonus(lower_message, condition)

        if condition in lower_message:
            score += CONTAINMENT_BONUS

        score += self._synonym_bonus(lower_message, condition)
        score += self._word_overlap_bonus(lower_message, condition)
        score += (guideline.priority or 0) * PRIORITY_WEIGHT

        return clamp_score(score)

    def _verb_bonus(self, lower_message: str, condition: str) -> float:
        for pattern, weight in self.verb_patterns:
            match = pattern.search(condition)
            if not match or not pattern.groups:
                continue
            keyword = match.group(1)
            if keyword and keyword in lower_message:
                return float(weight)
        return 0.0

    def _synonym_bonus(self, lower_message: str, condition: str) -> float:
        # Cada entrada suma por separado; el acotado final limita el total
        bonus = 0.0
        for key, synonyms in self.action_words:
            if key in condition and any(s in lower_message for s in synonyms):
                bonus += SYNONYM_BONUS
        return bonus

    def _word_overlap_bonus(self, lower_message: str, condition: str) -> float:
        message_words = lower_message.split()
        significant = [w for w in condition.split() if w not in self.stopwords]
        if not significant:
            return 0.0

        matched = sum(1 for w in significant if self._word_matches(w, message_words))
        return (matched / len(significant)) * WORD_OVERLAP_WEIGHT

    @staticmethod
    def _word_matches(cond_word: str, message_words: Iterable[str]) -> bool:
        for msg_word in message_words:
            if msg_word == cond_word:
                return True
            # Parciales sólo con palabras largas: "o" no debe casar con "competidor"
            if len(cond_word) > PARTIAL_MATCH_MIN_LENGTH and len(msg_word) > PARTIAL_MATCH_MIN_LENGTH:
                if cond_word in msg_word or msg_word in cond_word:
                    return True
        return False


class LexicalRanker:
    """Estrategia de ranking puramente léxica (sin embeddings)."""

    supports_vector_ranking = False
    name = "text"

    def __init__(
        self,
        scorer: Optional[LexicalScorer] = None,
        context: Optional[ContextBonusCalculator] = None,
        match_threshold: float = 30.0,
        max_guidelines: int = 3,
    ):
        self.scorer = scorer or LexicalScorer()
        self.context = context or ContextBonusCalculator()
        self.match_threshold = match_threshold
        self.max_guidelines = max_guidelines

    def is_match(self, score: float) -> bool:
        return score > self.match_threshold

    def rank(self, guidelines: Sequence[Guideline], message: str) -> List[MatchScore]:
        scores = []
        for guideline in guidelines:
            score = self.scorer.score(message, guideline)
            scores.append(MatchScore(guideline=guideline, score=score, matched=self.is_match(score)))
        return sorted(scores, key=lambda s: s.score, reverse=True)

    def score_with_context(
        self,
        message: str,
        guideline: Guideline,
        recent_messages: Sequence[ContextMessage] = (),
    ) -> float:
        base = self.scorer.score(message, guideline)
        return clamp_score(base + self.context.bonus(guideline, recent_messages))

    def rank_with_context(
        self,
        guidelines: Sequence[Guideline],
        message: str,
        recent_messages: Sequence[ContextMessage] = (),
    ) -> List[MatchScore]:
        scores = []
        for guideline in guidelines:
            score = self.score_with_context(message, guideline, recent_messages)
            scores.append(MatchScore(guideline=guideline, score=score, matched=self.is_match(score)))
        return sorted(scores, key=lambda s: s.score, reverse=True)

    def find_matching_guidelines(self, message: str, guidelines: Sequence[Guideline]) -> List[Guideline]:
        matched = [s.guideline for s in self.rank(guidelines, message) if s.matched]
        return matched[:self.max_guidelines]

    @staticmethod
    def filter_used_guidelines(guidelines: Sequence[Guideline], used_ids: Optional[Iterable[int]]) -> List[Guideline]:
        used = set(used_ids or ())
        if not used:
            return list(guidelines)
        return [g for g in guidelines if g.id not in used]
