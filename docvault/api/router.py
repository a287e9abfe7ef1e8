from fastapi import APIRouter

from docvault.api.routes import auth, documents, health, ingestion, users

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(documents.router, prefix="/document", tags=["document"])
api_router.include_router(users.router, prefix="/user", tags=["user"])
api_router.include_router(ingestion.router, prefix="/ingestion", tags=["ingestion"])
