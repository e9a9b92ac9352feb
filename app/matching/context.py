from typing import Optional, Sequence

from app.matching.category import CategoryClassifier
from app.matching.models import ContextMessage, ConversationFlowRule
from app.matching.patterns import CATEGORY_CONTINUITY_BONUS, CONVERSATION_FLOWS
from app.models.guideline import Guideline


class ContextBonusCalculator:
    """
    Bonus aditivo por contexto conversacional.

    - Continuidad: la categoría de la guideline aparece entre los últimos
      ``window`` mensajes clasificados.
    - Flujo: la primera regla (from, to) que coincide con la categoría del
      último mensaje y la de la guideline.

    El total no se acota aquí; lo hace quien lo suma al puntaje base.
    """

    def __init__(
        self,
        classifier: Optional[CategoryClassifier] = None,
        flows: Sequence[ConversationFlowRule] = CONVERSATION_FLOWS,
        continuity_bonus: float = CATEGORY_CONTINUITY_BONUS,
        window: int = 3,
    ):
        self.classifier = classifier or CategoryClassifier()
        self.flows = tuple(flows)
        self.continuity_bonus = continuity_bonus
        self.window = window

    def bonus(self, guideline: Guideline, recent_messages: Sequence[ContextMessage]) -> float:
        bonus = 0.0
        if not recent_messages:
            return bonus

        category = guideline.category

        if category:
            recent_categories = [
                self.classifier.detect(msg.content)
                for msg in list(recent_messages)[-self.window:]
            ]
            if category in recent_categories:
                bonus += self.continuity_bonus

        last_category = self.classifier.detect(recent_messages[-1].content)
        if last_category and category:
            for flow in self.flows:
                if flow.from_category == last_category and flow.to_category == category:
                    bonus += flow.boost
                    break

        return bonus
