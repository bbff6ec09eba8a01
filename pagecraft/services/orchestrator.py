# pagecraft/services/orchestrator.py
# Pipeline recursivo por sección: interpolar -> datos -> merge -> re-interpolar -> condición -> hijos
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from pagecraft.services.conditions import ConditionEvaluator, ConditionResult, is_empty_condition
from pagecraft.services.data_retrieval import DataConfigError, DataRetrievalStage, parse_data_config
from pagecraft.services.interpolation import interpolate_node
from pagecraft.services.scope import ScopeStore
from pagecraft.services.section_tree import SectionNode, iter_nodes

logger = logging.getLogger(__name__)


class SectionPipeline:
    """
    Renders a section tree depth-first.

    Each node receives its parent's scope; what the node retrieves is merged
    on top and handed to its own children only, never to its siblings.
    """

    def __init__(
        self,
        *,
        stage: DataRetrievalStage,
        evaluator: ConditionEvaluator,
        user_id: Optional[int] = None,
    ) -> None:
        self.stage = stage
        self.evaluator = evaluator
        self.user_id = user_id

    def process(self, nodes: Iterable[SectionNode], scope: ScopeStore) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for node in nodes:
            rendered = self.process_node(node, scope)
            if rendered is not None:
                out.append(rendered)
        return out

    def process_node(self, node: SectionNode, scope: ScopeStore) -> Optional[Dict[str, Any]]:
        interpolate_node(node, scope)

        # los errores de cada declaración ya quedaron en el log; el scope simplemente no existe
        outcome = self.stage.run(node.data_config, scope, node.id)
        node_scope = scope.merge(outcome.namespaces)

        interpolate_node(node, node_scope)

        rendered = _render(node, node_scope)
        if is_empty_condition(node.condition):
            rendered["children"] = self.process(node.children, node_scope)
            return rendered

        try:
            result = self.evaluator.evaluate(node.condition, self.user_id, node.section_name, node_scope)
        except Exception as e:  # un evaluador roto oculta la sección, no la página
            logger.warning("Condition evaluator failed for section %s (%s): %s", node.id, node.section_name, e)
            result = ConditionResult(
                result=False,
                error=f"Condition evaluation failed in section '{node.section_name}': {e}",
                condition_object=node.condition,
            )
        rendered["condition_debug"] = result.trace()
        if not result.result:
            if not node.debug:
                return None
            rendered["children"] = []
            return rendered

        rendered["children"] = self.process(node.children, node_scope)
        return rendered


def _render(node: SectionNode, scope: ScopeStore) -> Dict[str, Any]:
    return {
        "id": node.id,
        "section_name": node.section_name,
        "style_name": node.style_name,
        "position": node.position,
        "css": node.css,
        "css_mobile": node.css_mobile,
        "debug": node.debug,
        "condition": node.condition,
        "fields": node.fields,
        "retrieved_data": scope.data_namespaces(),
    }


def collect_cache_scopes(
    tree: Iterable[SectionNode],
    *,
    page_id: int,
    language_id: int,
    user_id: Optional[int],
) -> Dict[str, Any]:
    """
    Everything a cached render depends on: the page, the language, the user
    and every data table named in a ``data_config``. Tables read with
    ``current_user`` are user-specific; the rest are global.
    """
    global_tables: set[str] = set()
    user_tables: set[str] = set()
    for node in iter_nodes(tree):
        try:
            declarations = parse_data_config(node.data_config)
        except DataConfigError:
            continue
        for decl in declarations:
            if decl.get("current_user", True):
                user_tables.add(decl["table"])
            else:
                global_tables.add(decl["table"])
    return {
        "page": page_id,
        "language": language_id,
        "user": user_id,
        "data_tables": {
            "global": sorted(global_tables),
            "user": sorted(user_tables),
        },
    }
