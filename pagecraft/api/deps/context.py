# pagecraft/api/deps/context.py
# Identidad del llamante: la entrega la capa de auth de delante vía cabeceras
from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, status

from pagecraft.services.variables import RequestContext


def _parse_user_id(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="X-User-Id must be an integer")


def get_request_context(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
    x_user_groups: Optional[str] = Header(None, alias="X-User-Groups"),
    x_platform: Optional[str] = Header(None, alias="X-Platform"),
) -> RequestContext:
    return RequestContext(
        user_id=_parse_user_id(x_user_id),
        user_name=x_user_name or "",
        user_email=x_user_email or "",
        user_group=[g.strip() for g in (x_user_groups or "").split(",") if g.strip()],
        platform=x_platform or "web",
    )


def get_current_user_id_optional(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> Optional[int]:
    return _parse_user_id(x_user_id)
