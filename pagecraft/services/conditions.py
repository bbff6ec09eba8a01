# pagecraft/services/conditions.py
# Evaluación de condiciones de sección con JSON Logic (json-logic-qubit)
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol

from json_logic import jsonLogic

from pagecraft.services.scope import MISSING, SYSTEM, ScopeStore

logger = logging.getLogger(__name__)

MAX_DECODE_DEPTH = 5
QUERY_BUILDER_OPERATORS = ("in", "notIn")


class ConditionEngine(str, Enum):
    JSON_LOGIC = "json_logic"
    ALWAYS = "always"


class ConditionDecodeError(ValueError):
    pass


@dataclass
class ConditionResult:
    result: bool
    error: Optional[str] = None
    variables: Dict[str, Any] = field(default_factory=dict)
    condition_object: Any = None

    def trace(self) -> Dict[str, Any]:
        return {
            "result": self.result,
            "error": self.error,
            "variables": self.variables,
            "condition_object": self.condition_object,
        }


class ConditionEvaluator(Protocol):
    def evaluate(
        self,
        condition_expr: Any,
        user_id: Optional[int],
        section_keyword: str,
        scope: Mapping[str, Any],
    ) -> ConditionResult:
        ...


def is_empty_condition(expr: Any) -> bool:
    if expr is None:
        return True
    if isinstance(expr, str):
        return not expr.strip()
    return expr in ({}, [])


def decode_condition(expr: Any) -> Any:
    """
    Decode a stored condition. Strings are JSON-decoded, then decoded again
    while the result is still a JSON string (at most ``MAX_DECODE_DEPTH`` extra
    rounds).
    """
    if not isinstance(expr, str):
        return expr
    try:
        value = json.loads(expr)
    except ValueError as e:
        raise ConditionDecodeError(f"Invalid JSON condition: {e}") from e
    attempts = 0
    while isinstance(value, str) and attempts < MAX_DECODE_DEPTH:
        try:
            value = json.loads(value)
        except ValueError:
            break
        attempts += 1
    return value


# ===================== Preparación de la regla =====================
class RulePreparer:
    """
    Rewrites a decoded rule before handing it to ``jsonLogic``:

    * ``in`` / ``notIn`` arrive from the query builder as ``[field, selected]``;
      they are flipped to JSON Logic's ``[needle, haystack]`` order, a
      multi-value selection becomes an ``or`` of single checks and ``notIn``
      becomes the negation of ``in``.
    * ``var`` names are resolved against the scope (bare names fall back to the
      system namespace) and every value read is recorded for the trace.
    """

    def __init__(self, scope: Mapping[str, Any]) -> None:
        self.scope = scope if isinstance(scope, ScopeStore) else ScopeStore(scope)
        self.variables: Dict[str, Any] = {}

    def prepare(self, logic: Any) -> Any:
        if isinstance(logic, list):
            return [self.prepare(item) for item in logic]
        if not isinstance(logic, dict) or len(logic) != 1:
            return logic

        op, args = next(iter(logic.items()))
        if op == "var":
            return {"var": self._capture(args)}
        if op in QUERY_BUILDER_OPERATORS and isinstance(args, list) and len(args) == 2:
            return self._membership(op, args[0], args[1])
        return {op: self.prepare(args)}

    def _membership(self, op: str, field_value: Any, selected: Any) -> Dict[str, Any]:
        haystack = self.prepare(field_value)
        if isinstance(selected, list) and len(selected) == 1:
            rule: Dict[str, Any] = {"in": [self.prepare(selected[0]), haystack]}
        elif isinstance(selected, list) and selected:
            rule = {"or": [{"in": [self.prepare(s), haystack]} for s in selected]}
        else:
            rule = {"in": [self.prepare(selected), haystack]}
        return {"!": [rule]} if op == "notIn" else rule

    def _capture(self, args: Any) -> Any:
        parts = list(args) if isinstance(args, list) else [args]
        if not parts or not isinstance(parts[0], (str, int)) or parts[0] == "":
            return [self.prepare(p) for p in parts] if isinstance(args, list) else self.prepare(args)

        name = str(parts[0])
        default = parts[1] if len(parts) > 1 else None
        path = name
        value = self.scope.lookup(name)
        if value is MISSING and "." not in name:
            system_value = self.scope.lookup(f"{SYSTEM}.{name}")
            if system_value is not MISSING:
                path, value = f"{SYSTEM}.{name}", system_value
        self.variables[name] = default if value is MISSING else value
        return [path] + parts[1:] if isinstance(args, list) else path


class JsonLogicConditionEvaluator:
    def evaluate(
        self,
        condition_expr: Any,
        user_id: Optional[int],
        section_keyword: str,
        scope: Mapping[str, Any],
    ) -> ConditionResult:
        if is_empty_condition(condition_expr):
            return ConditionResult(result=True)

        try:
            decoded = decode_condition(condition_expr)
        except ConditionDecodeError as e:
            return ConditionResult(result=False, error=f"{e} in section '{section_keyword}'")

        if isinstance(decoded, bool):
            return ConditionResult(result=decoded, condition_object=decoded)
        if is_empty_condition(decoded):
            return ConditionResult(result=True, condition_object=decoded)
        if not isinstance(decoded, (dict, list)):
            return ConditionResult(
                result=False,
                error=f"Condition must be a JSON object in section '{section_keyword}' (got {decoded!r})",
                condition_object=decoded,
            )

        preparer = RulePreparer(scope)
        try:
            rule = preparer.prepare(decoded)
            result = bool(jsonLogic(rule, preparer.scope.as_dict()))
        except Exception as e:  # el evaluador falla cerrado
            logger.warning("Condition evaluation failed in section '%s' (user %s): %s", section_keyword, user_id, e)
            return ConditionResult(
                result=False,
                error=f"Condition evaluation failed in section '{section_keyword}': {e}",
                variables=preparer.variables,
                condition_object=decoded,
            )
        return ConditionResult(result=result, variables=preparer.variables, condition_object=decoded)


class AlwaysTrueEvaluator:
    """Ignores conditions entirely (useful for editors previewing every section)."""

    def evaluate(
        self,
        condition_expr: Any,
        user_id: Optional[int],
        section_keyword: str,
        scope: Mapping[str, Any],
    ) -> ConditionResult:
        return ConditionResult(result=True, condition_object=condition_expr)


def get_condition_evaluator(engine: ConditionEngine | str) -> ConditionEvaluator:
    engine = ConditionEngine(engine)
    if engine == ConditionEngine.ALWAYS:
        return AlwaysTrueEvaluator()
    return JsonLogicConditionEvaluator()
