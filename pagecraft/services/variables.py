# pagecraft/services/variables.py
# Namespaces raíz del render: "system" (contexto de la petición) y "globals" (por idioma)
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from pagecraft.core.settings import settings
from pagecraft.models.content import GlobalValue
from pagecraft.services.scope import GLOBALS, SYSTEM, ScopeStore


@dataclass
class RequestContext:
    """Caller identity as handed over by the upstream auth layer."""

    user_id: Optional[int] = None
    user_name: str = ""
    user_email: str = ""
    user_code: str = ""
    user_group: List[str] = field(default_factory=list)
    last_login: str = ""
    language_id: Optional[int] = None
    platform: str = "web"

    @property
    def effective_user_id(self) -> int:
        return self.user_id if self.user_id is not None else settings.GUEST_USER_ID


def build_system_namespace(
    context: RequestContext,
    *,
    language_id: int,
    page_keyword: str = "",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = now or datetime.now(ZoneInfo(settings.CMS_TIMEZONE))
    return {
        "user_id": context.user_id if context.user_id is not None else "",
        "user_name": context.user_name,
        "user_email": context.user_email,
        "user_code": context.user_code,
        "user_group": list(context.user_group),
        "language": context.language_id if context.language_id is not None else language_id,
        "last_login": context.last_login,
        "page_keyword": page_keyword,
        "platform": context.platform,
        "current_date": now.strftime("%Y-%m-%d"),
        "current_datetime": now.strftime("%Y-%m-%d %H:%M:%S"),
        "current_time": now.strftime("%H:%M"),
        "project_name": settings.PROJECT_NAME,
    }


def load_global_values(db: Session, language_id: int) -> Dict[str, Optional[str]]:
    rows = db.execute(
        select(GlobalValue.name, GlobalValue.value).where(GlobalValue.language_id == language_id)
    ).all()
    return {name: value for name, value in rows}


def build_root_scope(
    db: Session,
    context: RequestContext,
    *,
    language_id: int,
    page_keyword: str = "",
    now: Optional[datetime] = None,
) -> ScopeStore:
    return ScopeStore({
        SYSTEM: build_system_namespace(context, language_id=language_id, page_keyword=page_keyword, now=now),
        GLOBALS: load_global_values(db, language_id),
    })
