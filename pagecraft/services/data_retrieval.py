# pagecraft/services/data_retrieval.py
# Etapa de datos: declaraciones de data_config -> namespaces del scope
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import timezone as dt_timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple
from zoneinfo import ZoneInfo

from jsonschema import Draft202012Validator
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from pagecraft.models.content import DataRecord, DataTable
from pagecraft.services.interpolation import interpolate_value
from pagecraft.services.scope import RESERVED_NAMESPACES

logger = logging.getLogger(__name__)


class RetrieveMode(str, Enum):
    FIRST = "first"
    LAST = "last"
    ALL = "all"
    ALL_AS_ARRAY = "all_as_array"
    JSON = "JSON"


class DataRetrievalError(ValueError):
    pass


class DataConfigError(ValueError):
    """The whole ``data_config`` of a section is unusable."""


_FIELD_ITEM = {
    "type": "object",
    "required": ["field_name"],
    "properties": {
        "field_name": {"type": "string", "minLength": 1},
        "field_holder": {"type": "string"},
        "not_found_text": {"type": ["string", "number", "boolean", "null"]},
    },
}

_MAP_ITEM = {
    "type": "object",
    "required": ["field_name", "field_new_name"],
    "properties": {
        "field_name": {"type": "string", "minLength": 1},
        "field_new_name": {"type": "string", "minLength": 1},
    },
}

DATA_CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "array",
    "items": {
        "type": "object",
        "required": ["table"],
        "properties": {
            "table": {"type": "string", "minLength": 1},
            "filter": {"type": "string"},
            "scope": {"type": ["string", "integer"]},
            "current_user": {"type": "boolean"},
            "retrieve": {"enum": [m.value for m in RetrieveMode]},
            "all_fields": {"type": "boolean"},
            "fields": {"type": "array", "items": _FIELD_ITEM},
            "map_fields": {"type": "array", "items": _MAP_ITEM},
        },
    },
}

_validator = Draft202012Validator(DATA_CONFIG_SCHEMA)


def parse_data_config(value: Any) -> List[dict]:
    """
    Validate a decoded ``data_config``. ``None``/empty -> ``[]``.

    A single object is accepted as a one-item list. Anything that does not
    validate raises ``DataConfigError`` and the caller skips the whole list.
    """
    if value is None or value == "" or value == []:
        return []
    if isinstance(value, str):
        raise DataConfigError("data_config is not valid JSON")
    if isinstance(value, dict):
        value = [value]
    errors = sorted(_validator.iter_errors(value), key=lambda e: list(e.path))
    if errors:
        e = errors[0]
        path = ".".join(str(p) for p in e.path)
        raise DataConfigError(f"data_config validation error at '{path}': {e.message}")
    return list(value)


@dataclass
class FieldSpec:
    field_name: str
    field_holder: Optional[str] = None
    not_found_text: Any = ""

    @property
    def holder(self) -> str:
        return self.field_holder or self.field_name


@dataclass
class DataSourceDeclaration:
    table: str
    filter: str = ""
    scope: Optional[str] = None
    current_user: bool = True
    retrieve: RetrieveMode = RetrieveMode.ALL
    all_fields: bool = True
    fields: List[FieldSpec] = field(default_factory=list)
    map_fields: List[Tuple[str, str]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DataSourceDeclaration":
        scope = data.get("scope")
        return cls(
            table=data["table"],
            filter=data.get("filter") or "",
            scope=str(scope) if scope not in (None, "") else None,
            current_user=data.get("current_user", True),
            retrieve=RetrieveMode(data.get("retrieve") or RetrieveMode.ALL.value),
            all_fields=data.get("all_fields", True),
            fields=[
                FieldSpec(
                    field_name=f["field_name"],
                    field_holder=f.get("field_holder") or None,
                    not_found_text=f.get("not_found_text", ""),
                )
                for f in data.get("fields") or []
            ],
            map_fields=[(m["field_name"], m["field_new_name"]) for m in data.get("map_fields") or []],
        )

    def namespace(self, index: int) -> str:
        return self.scope if self.scope is not None else str(index)


class DataRetriever(Protocol):
    def retrieve(
        self,
        table: str,
        filter: str,
        fields: Optional[Sequence[str]],
        exclude_deleted: bool,
        language_id: int,
        timezone: str,
        user_id: Optional[int],
    ) -> List[Dict[str, Any]]:
        ...


# ===================== Filtro restringido =====================
_LIMIT_RE = re.compile(r"\bLIMIT\s+(\d+)\s*$", re.IGNORECASE)
_ORDER_RE = re.compile(r"\bORDER\s+BY\s+record_id(?:\s+(ASC|DESC))?\s*$", re.IGNORECASE)
_LEFTOVER_RE = re.compile(r"\b(ORDER\s+BY|LIMIT)\b", re.IGNORECASE)
_CLAUSE_RE = re.compile(
    r"""\s*(?:(AND)\s+)?([A-Za-z_]\w*)\s*(!=|<>|=)\s*('[^']*'|"[^"]*"|[^\s'"]+)\s*""",
    re.IGNORECASE,
)


@dataclass
class ParsedFilter:
    clauses: List[Tuple[str, str, str]] = field(default_factory=list)  # (campo, op, valor)
    descending: bool = False
    limit: Optional[int] = None


def parse_filter(text: str) -> ParsedFilter:
    """
    Parse ``a = 'x' AND b != 2 ORDER BY record_id DESC LIMIT 5``.

    Only equality/inequality clauses joined by AND, ordering on
    ``record_id`` and a trailing LIMIT are understood.
    """
    parsed = ParsedFilter()
    rest = (text or "").strip()

    m = _LIMIT_RE.search(rest)
    if m:
        parsed.limit = int(m.group(1))
        rest = rest[: m.start()].strip()
    m = _ORDER_RE.search(rest)
    if m:
        parsed.descending = (m.group(1) or "ASC").upper() == "DESC"
        rest = rest[: m.start()].strip()
    if _LEFTOVER_RE.search(rest):
        raise DataRetrievalError(f"Unsupported ORDER BY/LIMIT placement in filter: {text!r}")

    pos = 0
    while pos < len(rest):
        m = _CLAUSE_RE.match(rest, pos)
        if not m or m.end() == pos:
            raise DataRetrievalError(f"Unsupported filter syntax near {rest[pos:]!r}")
        if parsed.clauses and not m.group(1):
            raise DataRetrievalError(f"Filter clauses must be joined by AND near {rest[pos:]!r}")
        value = m.group(4)
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        op = "!=" if m.group(3) in ("!=", "<>") else "="
        parsed.clauses.append((m.group(2), op, value))
        pos = m.end()
    return parsed


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


class TableDataRetriever:
    """Default retriever over ``data_tables`` / ``data_records``; filtering happens in Python."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def retrieve(
        self,
        table: str,
        filter: str,
        fields: Optional[Sequence[str]],
        exclude_deleted: bool,
        language_id: int,
        timezone: str,
        user_id: Optional[int],
    ) -> List[Dict[str, Any]]:
        parsed = parse_filter(filter)
        table_id = self.db.scalar(select(DataTable.id).where(DataTable.name == table))
        if table_id is None:
            raise DataRetrievalError(f"Data table '{table}' not found")

        stmt = select(DataRecord).where(
            DataRecord.table_id == table_id,
            or_(DataRecord.language_id.is_(None), DataRecord.language_id == language_id),
        )
        if exclude_deleted:
            stmt = stmt.where(DataRecord.deleted.is_(False))
        if user_id is not None:
            stmt = stmt.where(DataRecord.user_id == user_id)
        stmt = stmt.order_by(DataRecord.id.desc() if parsed.descending else DataRecord.id.asc())
        if parsed.limit is not None and not parsed.clauses:
            stmt = stmt.limit(parsed.limit)

        tz = ZoneInfo(timezone)
        out: List[Dict[str, Any]] = []
        for rec in self.db.scalars(stmt):
            row = self._row(rec, tz)
            if not all((_as_text(row.get(k)) == v) == (op == "=") for k, op, v in parsed.clauses):
                continue
            if fields:
                row = {k: row[k] for k in fields if k in row}
            out.append(row)
            if parsed.limit is not None and len(out) >= parsed.limit:
                break
        return out

    @staticmethod
    def _row(rec: DataRecord, tz: ZoneInfo) -> Dict[str, Any]:
        entry_date = rec.entry_date
        if entry_date is not None:
            if entry_date.tzinfo is None:
                entry_date = entry_date.replace(tzinfo=dt_timezone.utc)
            entry_date = entry_date.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S")
        row: Dict[str, Any] = {"record_id": rec.id, "entry_date": entry_date, "user_id": rec.user_id}
        row.update(rec.data or {})
        return row


# ===================== Formas de resultado =====================
def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _field_value(record: Mapping[str, Any], spec: FieldSpec) -> Any:
    value = record.get(spec.field_name)
    return spec.not_found_text if _is_empty(value) else value


def _project_single(record: Dict[str, Any], decl: DataSourceDeclaration) -> Dict[str, Any]:
    if not decl.all_fields and decl.fields:
        return {spec.holder: _field_value(record, spec) for spec in decl.fields}
    return dict(record)


def _columns(rows: List[Dict[str, Any]], decl: DataSourceDeclaration) -> List[Tuple[str, Any]]:
    """(holder, per-row values) for the multi-row modes."""
    if not decl.all_fields and decl.fields:
        return [(spec.holder, [_field_value(r, spec) for r in rows]) for spec in decl.fields]
    return [(name, [r.get(name) for r in rows]) for name in rows[0].keys()]


def shape_rows(rows: List[Dict[str, Any]], decl: DataSourceDeclaration) -> Any:
    mode = decl.retrieve
    if mode in (RetrieveMode.FIRST, RetrieveMode.LAST):
        return _project_single(rows[0], decl) if rows else {}

    if mode == RetrieveMode.JSON:
        out = []
        for record in rows:
            shaped: Dict[str, Any] = {}
            if decl.fields:
                for old, new in decl.map_fields:
                    if old in record:
                        shaped[new] = record[old]
                for spec in decl.fields:
                    shaped[spec.holder] = _field_value(record, spec)
            else:
                shaped = dict(record)
                for old, new in decl.map_fields:
                    if old in shaped:
                        shaped[new] = shaped.pop(old)
            out.append(shaped)
        return out

    if not rows:
        return {}
    if mode == RetrieveMode.ALL_AS_ARRAY:
        return {name: values for name, values in _columns(rows, decl)}

    # ALL: un registro tal cual; varios -> valores unidos por coma
    if len(rows) == 1:
        return _project_single(rows[0], decl)
    return {name: ",".join(_as_text(v) for v in values) for name, values in _columns(rows, decl)}


# ===================== Etapa =====================
@dataclass
class RetrievalOutcome:
    """Namespaces produced by one section; failed declarations only show up in ``errors``."""

    namespaces: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    skipped_reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.errors and self.skipped_reason is None


class DataRetrievalStage:
    def __init__(
        self,
        retriever: DataRetriever,
        *,
        language_id: int,
        user_id: Optional[int],
        timezone: str = "UTC",
    ) -> None:
        self.retriever = retriever
        self.language_id = language_id
        self.user_id = user_id
        self.timezone = timezone

    def run(self, data_config: Any, scope: Mapping[str, Any], section_id: Optional[int] = None) -> RetrievalOutcome:
        outcome = RetrievalOutcome()
        try:
            declarations = parse_data_config(data_config)
        except DataConfigError as e:
            logger.warning("Section %s: data_config skipped: %s", section_id, e)
            outcome.skipped_reason = str(e)
            return outcome

        for index, raw in enumerate(declarations):
            decl = DataSourceDeclaration.from_dict(interpolate_value(raw, scope))
            ns = decl.namespace(index)
            try:
                if ns in RESERVED_NAMESPACES:
                    raise DataRetrievalError(f"Scope name '{ns}' is reserved")
                rows = self.retriever.retrieve(
                    decl.table,
                    self._filter_for(decl),
                    self._fields_for(decl),
                    True,
                    self.language_id,
                    self.timezone,
                    self.user_id if decl.current_user else None,
                )
                outcome.namespaces[ns] = shape_rows(rows, decl)
            except Exception as e:  # una declaración fallida no afecta a las demás
                logger.warning("Section %s: data source '%s' (%s) failed: %s", section_id, ns, decl.table, e)
                outcome.errors[ns] = str(e)
        return outcome

    @staticmethod
    def _filter_for(decl: DataSourceDeclaration) -> str:
        """first/last fix the ordering and LIMIT 1, replacing any trailing ORDER BY/LIMIT in the filter."""
        if decl.retrieve not in (RetrieveMode.FIRST, RetrieveMode.LAST):
            return decl.filter
        base = _LIMIT_RE.sub("", decl.filter.strip()).strip()
        base = _ORDER_RE.sub("", base).strip()
        direction = "ASC" if decl.retrieve == RetrieveMode.FIRST else "DESC"
        return f"{base} ORDER BY record_id {direction} LIMIT 1".strip()

    @staticmethod
    def _fields_for(decl: DataSourceDeclaration) -> Optional[List[str]]:
        """Record keys the shaping step reads, or ``None`` for whole records."""
        if decl.all_fields or not decl.fields:
            return None
        names = [spec.field_name for spec in decl.fields]
        if decl.retrieve == RetrieveMode.JSON:
            names += [old for old, _ in decl.map_fields]
        return list(dict.fromkeys(names))
