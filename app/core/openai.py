from typing import Optional

from openai import AsyncOpenAI
from app.core.config import settings

_client: Optional[AsyncOpenAI] = None

def client() -> AsyncOpenAI:
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
    return _client
