from __future__ import annotations

from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from pagecraft.api.v1.router import api_router
from pagecraft.core.config import create_app
from pagecraft.core.logging import configure_logging
from pagecraft.core.settings import settings

# registra todas las tablas en Base.metadata
import pagecraft.models.content  # noqa: F401
import pagecraft.models.versioning  # noqa: F401


app = create_app()
configure_logging(settings.LOG_LEVEL)

app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

app.include_router(api_router, prefix=settings.API_V1_STR)
