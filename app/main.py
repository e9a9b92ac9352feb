from fastapi import FastAPI
from app.routes.guidelines import router as guidelines_router
from app.routes.embeddings import router as embeddings_router
from app.routes.conversations import router as conversations_router

app = FastAPI(title="Guideline Matching Engine")
app.include_router(guidelines_router, prefix="/api")
app.include_router(embeddings_router, prefix="/api")
app.include_router(conversations_router, prefix="/api")

@app.get("/health")
async def health():
    return {"status": "ok"}
