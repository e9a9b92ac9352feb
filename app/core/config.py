from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    ENV: Literal["dev", "prod"] = "dev"

    DATABASE_URL: str
    DB_SCHEMA: str = "agent"

    OPENAI_API_KEY: Optional[str] = None
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIM: int = 1536

    # Matching
    MATCHING_METHOD: Literal["text", "vector"] = "vector"
    MAX_GUIDELINES_PER_RESPONSE: int = 3
    FATIGUE_FACTOR: float = 0.95
    RECENT_MESSAGES_CONTEXT: int = 3
    MATCH_THRESHOLD: float = 30.0
    GUIDELINE_CACHE_TTL_SECONDS: float = 300.0
    HYBRID_WEIGHT: float = 0.8
    VECTOR_SIMILARITY_THRESHOLD: float = 0.3
    VECTOR_SEARCH_LIMIT: int = 30

    # Llamadas externas
    EXTERNAL_CALL_TIMEOUT_SECONDS: float = 10.0
    EMBEDDING_TIMEOUT_SECONDS: float = 8.0
    EMBEDDING_BATCH_SIZE: int = 10
    EMBEDDING_BATCH_DELAY_SECONDS: float = 1.0
    MESSAGE_EMBEDDING_RETENTION_DAYS: int = 7

    @field_validator("FATIGUE_FACTOR")
    @classmethod
    def _fatigue_in_range(cls, v: float) -> float:
        if not 0 < v < 1:
            raise ValueError(f"FATIGUE_FACTOR must be in (0, 1), got {v}")
        return v

    @field_validator("HYBRID_WEIGHT")
    @classmethod
    def _hybrid_weight_in_range(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError(f"HYBRID_WEIGHT must be in [0, 1], got {v}")
        return v

    @field_validator("MAX_GUIDELINES_PER_RESPONSE", "RECENT_MESSAGES_CONTEXT", "VECTOR_SEARCH_LIMIT", "EMBEDDING_BATCH_SIZE")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be >= 1, got {v}")
        return v

    @property
    def embeddings_enabled(self) -> bool:
        """Hay proveedor de embeddings sólo con una API key real de OpenAI."""
        key = (self.OPENAI_API_KEY or "").strip()
        return key.startswith("sk-")

    @property
    def cache_ttl_ms(self) -> float:
        return self.GUIDELINE_CACHE_TTL_SECONDS * 1000

settings = Settings()
