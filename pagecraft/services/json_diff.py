# pagecraft/services/json_diff.py
# Normalización, hash estable y diffs (unified, side_by_side, json_patch, summary) de snapshots JSON
from __future__ import annotations

import difflib
import hashlib
import json
from enum import Enum
from itertools import zip_longest
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pagecraft.core.errors import BadRequestError


class DiffFormat(str, Enum):
    UNIFIED = "unified"
    SIDE_BY_SIDE = "side_by_side"
    JSON_PATCH = "json_patch"
    SUMMARY = "summary"


def parse_format(value: "DiffFormat | str") -> DiffFormat:
    try:
        return DiffFormat(value)
    except ValueError:
        allowed = ", ".join(f.value for f in DiffFormat)
        raise BadRequestError(f"Invalid diff format '{value}'. Allowed: {allowed}") from None


def normalize(value: Any) -> Any:
    """Sort object keys recursively; list order is meaningful and kept."""
    if isinstance(value, dict):
        return {str(k): normalize(value[k]) for k in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [normalize(v) for v in value]
    return value


def canonical_json(value: Any) -> str:
    return json.dumps(normalize(value), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def generate_structure_hash(structure: Any) -> str:
    return hashlib.md5(canonical_json(structure).encode("utf-8"), usedforsecurity=False).hexdigest()


def pretty_json(value: Any) -> str:
    return json.dumps(normalize(value), indent=2, sort_keys=True, ensure_ascii=False)


# ===================== Cambios estructurales =====================
def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "double"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


Segments = Tuple[str, ...]


def _walk(old: Any, new: Any, segments: Segments) -> Iterator[Tuple[Segments, Dict[str, Any]]]:
    if isinstance(old, dict) and isinstance(new, dict):
        for key in sorted(set(old) | set(new), key=str):
            child = segments + (str(key),)
            if key not in old:
                yield child, {"type": "addition", "value": new[key]}
            elif key not in new:
                yield child, {"type": "removal", "value": old[key]}
            else:
                yield from _walk(old[key], new[key], child)
        return

    if isinstance(old, (list, tuple)) and isinstance(new, (list, tuple)):
        common = min(len(old), len(new))
        for i in range(common):
            yield from _walk(old[i], new[i], segments + (str(i),))
        for i in range(common, len(new)):
            yield segments + (str(i),), {"type": "addition", "value": new[i]}
        # removals in descending index order
        for i in reversed(range(common, len(old))):
            yield segments + (str(i),), {"type": "removal", "value": old[i]}
        return

    if _type_name(old) != _type_name(new):
        yield segments, {"type": "type_change", "old_value": old, "new_value": new}
    elif old != new:
        yield segments, {"type": "value_change", "old_value": old, "new_value": new}


def _dot_path(segments: Segments) -> str:
    return ".".join(segments)


def _pointer(segments: Segments) -> str:
    return "/" + "/".join(s.replace("~", "~0").replace("/", "~1") for s in segments)


def find_changes(old: Any, new: Any) -> List[Dict[str, Any]]:
    return [{"path": _dot_path(seg), **change} for seg, change in _walk(normalize(old), normalize(new), ())]


def summary_diff(old: Any, new: Any) -> Dict[str, Any]:
    changes = find_changes(old, new)
    return {"are_equal": not changes, "changes": changes}


def json_patch_diff(old: Any, new: Any) -> List[Dict[str, Any]]:
    ops: List[Dict[str, Any]] = []
    for seg, change in _walk(normalize(old), normalize(new), ()):
        kind = change["type"]
        if kind == "addition":
            ops.append({"op": "add", "path": _pointer(seg), "value": change["value"]})
        elif kind == "removal":
            ops.append({"op": "remove", "path": _pointer(seg)})
        else:
            ops.append({"op": "replace", "path": _pointer(seg), "value": change["new_value"]})
    return ops


# ===================== Diffs de texto =====================
def unified_diff(old: Any, new: Any, *, from_label: str = "old", to_label: str = "new") -> str:
    diff = difflib.unified_diff(
        pretty_json(old).splitlines(),
        pretty_json(new).splitlines(),
        fromfile=from_label,
        tofile=to_label,
        lineterm="",
    )
    return "\n".join(diff)


def side_by_side_diff(old: Any, new: Any) -> List[Dict[str, Any]]:
    """Rows ``{tag, old_line, old_text, new_line, new_text}``; line numbers are 1-based, ``None`` when absent."""
    a = pretty_json(old).splitlines()
    b = pretty_json(new).splitlines()
    rows: List[Dict[str, Any]] = []
    matcher = difflib.SequenceMatcher(None, a, b, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for k in range(i2 - i1):
                rows.append(_row("equal", i1 + k, a[i1 + k], j1 + k, b[j1 + k]))
        elif tag == "delete":
            for i in range(i1, i2):
                rows.append(_row("delete", i, a[i], None, None))
        elif tag == "insert":
            for j in range(j1, j2):
                rows.append(_row("insert", None, None, j, b[j]))
        else:
            for i, j in zip_longest(range(i1, i2), range(j1, j2)):
                rows.append(_row(
                    "replace",
                    i, a[i] if i is not None else None,
                    j, b[j] if j is not None else None,
                ))
    return rows


def _row(tag: str, i: Optional[int], old_text: Optional[str], j: Optional[int], new_text: Optional[str]) -> Dict[str, Any]:
    return {
        "tag": tag,
        "old_line": i + 1 if i is not None else None,
        "old_text": old_text,
        "new_line": j + 1 if j is not None else None,
        "new_text": new_text,
    }


def compare(old: Any, new: Any, fmt: "DiffFormat | str" = DiffFormat.UNIFIED, **labels: str) -> Any:
    fmt = parse_format(fmt)
    if fmt == DiffFormat.SUMMARY:
        return summary_diff(old, new)
    if fmt == DiffFormat.JSON_PATCH:
        return json_patch_diff(old, new)
    if fmt == DiffFormat.SIDE_BY_SIDE:
        return side_by_side_diff(old, new)
    return unified_diff(old, new, **labels)
