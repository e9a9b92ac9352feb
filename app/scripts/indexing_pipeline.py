import asyncio

from app.core.dependencies import get_embedding_service
from app.db.bootstrap import bootstrap_db

async def main():
    print("🚀 Iniciando pipeline de embeddings de guidelines...")
    await bootstrap_db()

    service = get_embedding_service()
    if service is None:
        print("❌ Error: OPENAI_API_KEY no configurada, no se pueden generar embeddings.")
        return

    updated = await service.update_guideline_embeddings()
    print(f"✅ ¡Indexación completada! {updated} guidelines actualizadas.")

if __name__ == "__main__":
    asyncio.run(main())
