from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from app.core.config import settings
from app.core.dependencies import get_embedding_service, get_guideline_cache, get_guideline_store
from app.core.guideline_cache import SessionGuidelineCache
from app.db.interfaces import GuidelineStore
from app.models.guideline import Guideline
from app.services.embedding import EmbeddingService

router = APIRouter(prefix="/embeddings", tags=["Embeddings"])

class GenerateBody(BaseModel):
    guideline_ids: Optional[List[int]] = None

class SearchBody(BaseModel):
    query: str = Field(min_length=1)
    threshold: float = Field(default=0.6, ge=0, le=1)
    limit: int = Field(default=5, ge=1, le=50)

def require_embeddings(
    service: Optional[EmbeddingService] = Depends(get_embedding_service),
) -> EmbeddingService:
    if service is None:
        raise HTTPException(status_code=503, detail="Embedding provider not configured")
    return service

async def _guideline_or_404(guidelines: GuidelineStore, guideline_id: int) -> Guideline:
    guideline = await guidelines.fetch_guideline(guideline_id)
    if guideline is None:
        raise HTTPException(status_code=404, detail=f"Guideline not found: {guideline_id}")
    return guideline

def _summary(g: Guideline) -> dict:
    return {
        "id": g.id,
        "condition": g.condition,
        "action": g.action,
        "category": g.category,
        "priority": g.priority,
    }

@router.get("/status")
async def embeddings_status(
    service: Optional[EmbeddingService] = Depends(get_embedding_service),
    cache: SessionGuidelineCache = Depends(get_guideline_cache),
):
    if service is None:
        return {
            "status": "ok",
            "openai_configured": False,
            "vector_search_enabled": False,
            "guideline_cache": cache.get_stats(),
        }

    stats = await service.embedding_status()
    return {
        "status": "ok",
        "openai_configured": True,
        "embedding_model": service.model,
        "guidelines": {
            "total": stats["total_guidelines"],
            "with_embeddings": stats["guidelines_with_embeddings"],
            "missing_embeddings": stats["missing_embeddings"],
        },
        "message_cache": {"total": stats["cached_message_embeddings"]},
        "vector_search_enabled": stats["guidelines_with_embeddings"] > 0,
        "guideline_cache": cache.get_stats(),
    }

@router.post("/generate")
async def generate_embeddings(body: GenerateBody, service: EmbeddingService = Depends(require_embeddings)):
    updated = await service.update_guideline_embeddings(body.guideline_ids)
    return {"success": True, "updated": updated}

@router.post("/search")
@router.post("/test")
async def search_embeddings(body: SearchBody, service: EmbeddingService = Depends(require_embeddings)):
    embedding = await service.embed_text(body.query)
    hits = await service.search_by_similarity(embedding, body.threshold, body.limit)
    return {
        "query": body.query,
        "results": [
            {
                "id": h.guideline_id,
                "similarity": h.similarity,
                "similarity_percentage": f"{h.similarity * 100:.1f}%",
            }
            for h in hits
        ],
    }

@router.get("/guidelines/{guideline_id}")
async def guideline_embedding_info(
    guideline_id: int,
    guidelines: GuidelineStore = Depends(get_guideline_store),
):
    guideline = await _guideline_or_404(guidelines, guideline_id)
    embedding = guideline.condition_embedding
    return {
        **_summary(guideline),
        "active": guideline.active,
        "embedding_model": guideline.embedding_model,
        "has_embedding": embedding is not None,
        "embedding_dimension": len(embedding) if embedding is not None else None,
    }

@router.get("/guidelines/{guideline_id}/similar")
async def similar_guidelines(
    guideline_id: int,
    threshold: float = Query(default=0.8, ge=0, le=1),
    guidelines: GuidelineStore = Depends(get_guideline_store),
    service: EmbeddingService = Depends(require_embeddings),
):
    """Guidelines activas con condición casi igual: posibles duplicados o conflictos."""
    reference = await _guideline_or_404(guidelines, guideline_id)
    candidates = await guidelines.fetch_active_guidelines()
    similar = await service.find_similar_guidelines(reference, candidates, threshold)
    return {
        "guideline_id": guideline_id,
        "threshold": threshold,
        "similar": [
            {**_summary(g), "similarity": round(similarity, 4)}
            for g, similarity in similar
        ],
    }

@router.delete("/cleanup")
async def cleanup_embeddings(days: int = settings.MESSAGE_EMBEDDING_RETENTION_DAYS, service: EmbeddingService = Depends(require_embeddings)):
    deleted = await service.cleanup_message_embeddings(days)
    return {"success": True, "deleted": deleted, "days_kept": days}
