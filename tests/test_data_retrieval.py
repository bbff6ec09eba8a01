# tests/test_data_retrieval.py
import pytest

from pagecraft.services.data_retrieval import (
    DataConfigError,
    DataRetrievalError,
    DataRetrievalStage,
    DataSourceDeclaration,
    TableDataRetriever,
    parse_data_config,
    parse_filter,
    shape_rows,
)
from pagecraft.services.scope import ScopeStore

EN = 3

ROWS = [
    {"record_id": 1, "name": "ana", "score": "10"},
    {"record_id": 2, "name": "bob", "score": ""},
]


class FakeRetriever:
    def __init__(self, tables=None, fail=()):
        self.tables = tables or {}
        self.fail = set(fail)
        self.calls = []

    def retrieve(self, table, filter, fields, exclude_deleted, language_id, timezone, user_id):
        self.calls.append({
            "table": table, "filter": filter, "fields": fields, "user_id": user_id, "language_id": language_id,
        })
        if table in self.fail:
            raise TimeoutError(f"{table} timed out")
        return list(self.tables.get(table, []))


def _decl(**kw):
    return DataSourceDeclaration.from_dict({"table": "t", **kw})


# ---------- declaraciones ----------
def test_declaration_defaults():
    d = _decl()
    assert d.retrieve.value == "all"
    assert d.current_user is True
    assert d.all_fields is True
    assert d.namespace(4) == "4"
    assert _decl(scope="orders").namespace(0) == "orders"


def test_parse_data_config_rejects_invalid_declarations():
    assert parse_data_config(None) == []
    assert parse_data_config({"table": "t"}) == [{"table": "t"}]
    with pytest.raises(DataConfigError):
        parse_data_config("{broken")
    with pytest.raises(DataConfigError):
        parse_data_config([{"table": "t", "retrieve": "sometimes"}])
    with pytest.raises(DataConfigError):
        parse_data_config([{"filter": "a = 1"}])


# ---------- filtro ----------
def test_parse_filter_clauses_order_and_limit():
    parsed = parse_filter("AND name = 'ana' AND score != 3 ORDER BY record_id DESC LIMIT 2")
    assert parsed.clauses == [("name", "=", "ana"), ("score", "!=", "3")]
    assert parsed.descending is True
    assert parsed.limit == 2


def test_parse_filter_rejects_unsupported_syntax():
    with pytest.raises(DataRetrievalError):
        parse_filter("name LIKE 'a%'")
    with pytest.raises(DataRetrievalError):
        parse_filter("a = 1 b = 2")
    with pytest.raises(DataRetrievalError):
        parse_filter("a = 1 ORDER BY record_id ASC ORDER BY record_id DESC")


# ---------- formas ----------
def test_first_and_last_return_single_record():
    assert shape_rows(ROWS[:1], _decl(retrieve="first")) == ROWS[0]
    assert shape_rows([], _decl(retrieve="last")) == {}


def test_all_joins_multiple_rows_with_commas():
    assert shape_rows(ROWS, _decl()) == {"record_id": "1,2", "name": "ana,bob", "score": "10,"}


def test_all_with_field_specs_and_not_found_text():
    decl = _decl(all_fields=False, fields=[
        {"field_name": "name", "field_holder": "who"},
        {"field_name": "score", "not_found_text": "n/a"},
    ])
    assert shape_rows(ROWS, decl) == {"who": "ana,bob", "score": "10,n/a"}
    assert shape_rows(ROWS[1:], decl) == {"who": "bob", "score": "n/a"}


def test_all_as_array_collects_lists():
    assert shape_rows(ROWS, _decl(retrieve="all_as_array")) == {
        "record_id": [1, 2], "name": ["ana", "bob"], "score": ["10", ""],
    }


def test_json_mode_maps_and_projects():
    decl = _decl(retrieve="JSON", map_fields=[{"field_name": "name", "field_new_name": "user"}])
    assert shape_rows(ROWS, decl) == [
        {"record_id": 1, "user": "ana", "score": "10"},
        {"record_id": 2, "user": "bob", "score": ""},
    ]
    decl = _decl(retrieve="JSON", fields=[{"field_name": "score", "not_found_text": "-"}])
    assert shape_rows(ROWS, decl) == [{"score": "10"}, {"score": "-"}]


# ---------- etapa ----------
def _stage(retriever, user_id=5):
    return DataRetrievalStage(retriever, language_id=EN, user_id=user_id)


def test_stage_interpolates_declarations_against_parent_scope():
    retriever = FakeRetriever({"orders": ROWS[:1]})
    scope = ScopeStore({"system": {"user_name": "ana"}})
    outcome = _stage(retriever).run(
        [{"table": "orders", "scope": "o", "filter": "name = '{{system.user_name}}'", "retrieve": "first"}],
        scope,
    )
    assert outcome.ok
    assert outcome.namespaces == {"o": ROWS[0]}
    assert retriever.calls[0]["filter"] == "name = 'ana' ORDER BY record_id ASC LIMIT 1"
    assert retriever.calls[0]["user_id"] == 5


@pytest.mark.parametrize("filter_text, retrieve, expected", [
    ("", "first", "ORDER BY record_id ASC LIMIT 1"),
    ("name = 'ana' LIMIT 5", "first", "name = 'ana' ORDER BY record_id ASC LIMIT 1"),
    ("name = 'ana' ORDER BY record_id ASC", "last", "name = 'ana' ORDER BY record_id DESC LIMIT 1"),
    ("ORDER BY record_id DESC LIMIT 3", "first", "ORDER BY record_id ASC LIMIT 1"),
    ("name = 'ana' ORDER BY record_id LIMIT 2", "all", "name = 'ana' ORDER BY record_id LIMIT 2"),
])
def test_first_and_last_replace_existing_order_and_limit(filter_text, retrieve, expected):
    retriever = FakeRetriever({"orders": ROWS})
    _stage(retriever).run([{"table": "orders", "filter": filter_text, "retrieve": retrieve}], ScopeStore())
    assert retriever.calls[0]["filter"] == expected
    parse_filter(expected)


def test_stage_passes_field_projection_to_retriever():
    retriever = FakeRetriever({"orders": ROWS})
    _stage(retriever).run(
        [
            {"table": "orders", "all_fields": False, "fields": [{"field_name": "name"}, {"field_name": "score"}]},
            {"table": "orders", "fields": [{"field_name": "name"}]},
            {"table": "orders", "retrieve": "JSON", "all_fields": False,
             "fields": [{"field_name": "score"}],
             "map_fields": [{"field_name": "name", "field_new_name": "user"}]},
        ],
        ScopeStore(),
    )
    assert [c["fields"] for c in retriever.calls] == [["name", "score"], None, ["score", "name"]]


def test_stage_current_user_false_reads_everyone():
    retriever = FakeRetriever({"orders": ROWS})
    _stage(retriever).run([{"table": "orders", "current_user": False}], ScopeStore())
    assert retriever.calls[0]["user_id"] is None


def test_one_failing_declaration_does_not_affect_siblings():
    retriever = FakeRetriever({"good": ROWS[:1]}, fail={"slow"})
    outcome = _stage(retriever).run(
        [{"table": "slow", "scope": "a"}, {"table": "good", "scope": "b"}],
        ScopeStore(),
    )
    assert "a" not in outcome.namespaces
    assert outcome.namespaces["b"] == ROWS[0]
    assert "timed out" in outcome.errors["a"]


def test_reserved_scope_names_are_refused():
    outcome = _stage(FakeRetriever({"t": ROWS})).run([{"table": "t", "scope": "system"}], ScopeStore())
    assert outcome.namespaces == {}
    assert "system" in outcome.errors


def test_invalid_data_config_skips_the_whole_section():
    retriever = FakeRetriever({"t": ROWS})
    outcome = _stage(retriever).run([{"table": "t"}, {"table": 3}], ScopeStore())
    assert outcome.namespaces == {}
    assert outcome.skipped_reason
    assert retriever.calls == []


# ---------- retriever por defecto ----------
def test_table_retriever_filters_user_language_and_deleted(db, cms):
    table = cms.data_table("orders")
    cms.record(table, {"item": "pen", "status": "open"}, user_id=5)
    cms.record(table, {"item": "ink", "status": "open"}, user_id=5, language_id=EN)
    cms.record(table, {"item": "cap", "status": "open"}, user_id=5, language_id=2)
    cms.record(table, {"item": "box", "status": "open"}, user_id=6)
    cms.record(table, {"item": "old", "status": "open"}, user_id=5, deleted=True)
    cms.record(table, {"item": "mug", "status": "closed"}, user_id=5)

    retriever = TableDataRetriever(db)
    rows = retriever.retrieve("orders", "status = 'open'", None, True, EN, "UTC", 5)
    assert [r["item"] for r in rows] == ["pen", "ink"]
    assert {"record_id", "entry_date", "user_id"} <= set(rows[0])

    rows = retriever.retrieve("orders", "ORDER BY record_id DESC LIMIT 1", None, True, EN, "UTC", None)
    assert [r["item"] for r in rows] == ["mug"]

    rows = retriever.retrieve("orders", "", ["item"], True, EN, "UTC", 6)
    assert rows == [{"item": "box"}]


def test_table_retriever_unknown_table(db, cms):
    with pytest.raises(DataRetrievalError):
        TableDataRetriever(db).retrieve("nope", "", None, True, EN, "UTC", None)


def test_table_retriever_projection_keeps_only_present_fields(db, cms):
    table = cms.data_table("orders")
    cms.record(table, {"item": "pen", "status": "open"}, user_id=5)
    cms.record(table, {"item": "ink"}, user_id=5)

    rows = TableDataRetriever(db).retrieve("orders", "LIMIT 5", ["item", "status"], True, EN, "UTC", 5)
    assert rows == [{"item": "pen", "status": "open"}, {"item": "ink"}]
