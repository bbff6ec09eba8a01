# pagecraft/services/interpolation.py
# Sustitución de {{namespace.clave}} en los campos de contenido permitidos
from __future__ import annotations

import json
import re
from typing import Any, Mapping

from pagecraft.services.scope import MISSING, ScopeStore
from pagecraft.services.section_tree import SectionNode

PLACEHOLDER_RE = re.compile(r"\{\{([^}]+)\}\}")

# Campos string directos del nodo
DIRECT_STRING_FIELDS = ("css", "css_mobile", "condition")

# Campos traducidos cuyo "content" admite variables
CONTENT_FIELDS = frozenset({
    # texto
    "text", "html", "markdown", "content",
    # formularios
    "label", "placeholder", "description", "name", "title",
    "btn_save_label", "btn_update_label", "btn_cancel_label", "btn_cancel_url",
    "alert_success", "alert_error",
    "redirect_at_end",
    "confirmation_title", "confirmation_continue", "confirmation_message",
    # componentes mantine
    "mantine_rich_text_editor_placeholder",
    "mantine_highlight_highlight",
    "mantine_spoiler_show_label",
    "mantine_spoiler_hide_label",
    "mantine_switch_on_label",
    "mantine_switch_off_label",
    "mantine_tooltip_label",
    "mantine_list_item_content",
    "mantine_datepicker_placeholder",
    "mantine_color_picker_button_label",
    "mantine_text_gradient",
    "mantine_accordion_item_value",
    "mantine_accordion_default_value",
    "mantine_notification_title",
    "mantine_title_text_wrap",
    "mantine_blockquote_icon_size",
})


def render_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)


def interpolate(text: str, scope: Mapping[str, Any]) -> str:
    """Replace every resolvable placeholder; unresolved ones are left verbatim."""
    if not text or "{{" not in text:
        return text
    store = scope if isinstance(scope, ScopeStore) else ScopeStore(scope)

    def _sub(match: re.Match) -> str:
        value = store.lookup(match.group(1).strip())
        if value is MISSING:
            return match.group(0)
        return render_value(value)

    return PLACEHOLDER_RE.sub(_sub, text)


def interpolate_value(value: Any, scope: Mapping[str, Any]) -> Any:
    """Interpolate strings nested anywhere inside dicts/lists; other values pass through."""
    if isinstance(value, str):
        return interpolate(value, scope)
    if isinstance(value, dict):
        return {k: interpolate_value(v, scope) for k, v in value.items()}
    if isinstance(value, list):
        return [interpolate_value(v, scope) for v in value]
    return value


def interpolate_node(node: SectionNode, scope: Mapping[str, Any]) -> None:
    """Interpolate the allow-listed fields of one node in place (children untouched)."""
    store = scope if isinstance(scope, ScopeStore) else ScopeStore(scope)
    for attr in DIRECT_STRING_FIELDS:
        current = getattr(node, attr)
        if isinstance(current, str):
            setattr(node, attr, interpolate(current, store))

    for field_name, entry in node.fields.items():
        if field_name not in CONTENT_FIELDS or not isinstance(entry, dict):
            continue
        if "content" in entry:
            entry["content"] = interpolate_value(entry["content"], store)
