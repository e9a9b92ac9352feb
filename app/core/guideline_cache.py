"""
Caché en memoria del catálogo de guidelines por session_id con TTL de 5 min.
Evita leer el catálogo de la base de datos en cada turno de una misma sesión.
"""
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, List, Optional

from app.core.logger import get_logger
from app.models.guideline import Guideline

logger = get_logger(__name__)

DEFAULT_TTL_MS = 5 * 60 * 1000


def monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass
class CachedGuidelineSet:
    """Catálogo cacheado para una sesión."""
    guidelines: List[Guideline]
    inserted_at: float  # ms según el reloj de la caché

    def is_expired(self, now_ms: float, ttl_ms: float) -> bool:
        return now_ms - self.inserted_at > ttl_ms


class SessionGuidelineCache:
    """
    Caché de guidelines por sesión.

    Features:
    - Una entrada por session_id
    - Expiración perezosa en ``get`` y barrido explícito con ``sweep_expired``
    - Thread-safe: ``get``/``set`` son atómicos bajo el mismo lock
    - Reloj inyectable (milisegundos) para poder testear el TTL
    """

    def __init__(self, ttl_ms: float = DEFAULT_TTL_MS, clock: Optional[Callable[[], float]] = None):
        self.ttl_ms = ttl_ms
        self._clock = clock or monotonic_ms
        self._entries: Dict[str, CachedGuidelineSet] = {}
        self._lock = Lock()

    def get(self, session_id: str) -> Optional[List[Guideline]]:
        """Retorna el catálogo cacheado o None si no existe o expiró."""
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None
            if entry.is_expired(self._clock(), self.ttl_ms):
                del self._entries[session_id]
                return None
            return entry.guidelines

    def set(self, session_id: str, guidelines: List[Guideline]) -> None:
        with self._lock:
            self._entries[session_id] = CachedGuidelineSet(
                guidelines=list(guidelines),
                inserted_at=self._clock(),
            )

    def invalidate(self, session_id: str) -> None:
        with self._lock:
            self._entries.pop(session_id, None)

    def sweep_expired(self) -> int:
        """Elimina todas las entradas expiradas y retorna cuántas se borraron."""
        with self._lock:
            now = self._clock()
            expired = [
                sid for sid, entry in self._entries.items()
                if entry.is_expired(now, self.ttl_ms)
            ]
            for sid in expired:
                del self._entries[sid]

        if expired:
            logger.debug("Limpieza de caché: %d sesiones expiradas eliminadas", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> Dict:
        with self._lock:
            now = self._clock()
            return {
                "total_sessions": len(self._entries),
                "ttl_ms": self.ttl_ms,
                "sessions": {
                    sid: {
                        "guidelines_count": len(entry.guidelines),
                        "age_ms": now - entry.inserted_at,
                        "is_expired": entry.is_expired(now, self.ttl_ms),
                    }
                    for sid, entry in self._entries.items()
                }
            }
