# pagecraft/api/v1/router.py
from fastapi import APIRouter

from .endpoints import health, pages, versions

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(pages.router, prefix="/pages", tags=["pages"])

# Admin: ciclo de vida de versiones
api_router.include_router(versions.router, prefix="/admin/pages", tags=["versions"])
