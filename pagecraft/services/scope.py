# pagecraft/services/scope.py
from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping, Optional

SYSTEM = "system"
GLOBALS = "globals"
RESERVED_NAMESPACES = frozenset({SYSTEM, GLOBALS})

# Sentinela para "no resuelto" (None es un valor válido)
MISSING = object()


class ScopeStore(Mapping[str, Any]):
    """
    Immutable mapping ``namespace -> value`` visible to a section.

    ``merge`` returns a new store: namespaces produced by the section replace
    inherited ones with the same name; every other inherited namespace stays
    visible. Stores are never mutated in place, so siblings cannot see each
    other's data.
    """

    def __init__(self, namespaces: Optional[Mapping[str, Any]] = None) -> None:
        self._ns: Dict[str, Any] = dict(namespaces or {})

    def __getitem__(self, key: str) -> Any:
        return self._ns[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._ns)

    def __len__(self) -> int:
        return len(self._ns)

    def __repr__(self) -> str:
        return f"ScopeStore({sorted(self._ns)})"

    def merge(self, produced: Mapping[str, Any]) -> "ScopeStore":
        merged = dict(self._ns)
        merged.update(produced)
        return ScopeStore(merged)

    def lookup(self, path: str) -> Any:
        """Resolve a dot path (``ns.key.sub``); list items by numeric index. ``MISSING`` when absent."""
        parts = [p for p in path.strip().split(".")]
        if not parts or not parts[0]:
            return MISSING
        current: Any = self._ns
        for part in parts:
            if isinstance(current, Mapping):
                if part not in current:
                    return MISSING
                current = current[part]
            elif isinstance(current, list) and part.isdigit():
                idx = int(part)
                if idx >= len(current):
                    return MISSING
                current = current[idx]
            else:
                return MISSING
        return current

    def data_namespaces(self) -> Dict[str, Any]:
        """Namespaces produced by data sources (everything but system/globals)."""
        return {k: v for k, v in self._ns.items() if k not in RESERVED_NAMESPACES}

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._ns)
