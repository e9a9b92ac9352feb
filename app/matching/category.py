from typing import Optional, Sequence, Tuple

from app.matching.patterns import CATEGORY_PATTERNS


class CategoryClassifier:
    """Clasifica un texto en la primera categoría cuyo patrón aparezca en él."""

    def __init__(self, patterns: Sequence[Tuple[str, Sequence[str]]] = CATEGORY_PATTERNS):
        self.patterns = tuple((category, tuple(p)) for category, p in patterns)

    def detect(self, message: str) -> Optional[str]:
        lower_message = (message or "").lower()
        for category, patterns in self.patterns:
            if any(pattern in lower_message for pattern in patterns):
                return category
        return None
