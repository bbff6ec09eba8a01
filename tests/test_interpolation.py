# tests/test_interpolation.py
from pagecraft.services.interpolation import interpolate, interpolate_node, interpolate_value
from pagecraft.services.scope import ScopeStore
from pagecraft.services.section_tree import SectionNode

SCOPE = ScopeStore({
    "system": {"user_name": "ana", "user_group": ["admin", "editor"], "flag": True, "empty": None},
    "globals": {"brand": "Pagecraft"},
    "orders": {"total": 3, "items": [{"sku": "A-1"}]},
})


def test_text_without_placeholders_is_unchanged():
    assert interpolate("plain text", SCOPE) == "plain text"
    assert interpolate("", SCOPE) == ""


def test_unknown_keys_are_left_verbatim():
    text = "Hi {{system.nobody}} from {{missing.ns}}"
    assert interpolate(text, SCOPE) == text


def test_resolved_values_and_whitespace_inside_braces():
    assert interpolate("Hi {{ system.user_name }} @ {{globals.brand}}", SCOPE) == "Hi ana @ Pagecraft"


def test_value_rendering_rules():
    assert interpolate("{{system.flag}}", SCOPE) == "true"
    assert interpolate("[{{system.empty}}]", SCOPE) == "[]"
    assert interpolate("{{system.user_group}}", SCOPE) == '["admin","editor"]'
    assert interpolate("{{orders.total}}", SCOPE) == "3"


def test_nested_paths_and_list_indexes():
    assert interpolate("{{orders.items.0.sku}}", SCOPE) == "A-1"
    assert interpolate("{{orders.items.5.sku}}", SCOPE) == "{{orders.items.5.sku}}"


def test_whole_namespace_renders_as_compact_json():
    assert interpolate("{{orders}}", SCOPE) == '{"items":[{"sku":"A-1"}],"total":3}'


def test_interpolate_value_walks_nested_structures():
    value = {"filter": "user = '{{system.user_name}}'", "fields": [{"field_holder": "{{globals.brand}}"}], "n": 1}
    assert interpolate_value(value, SCOPE) == {
        "filter": "user = 'ana'",
        "fields": [{"field_holder": "Pagecraft"}],
        "n": 1,
    }


def test_node_interpolation_only_touches_allow_listed_fields():
    node = SectionNode(
        id=1,
        section_name="{{system.user_name}}",
        position=0,
        style_name="{{globals.brand}}",
        css="text-{{orders.total}}",
        condition='{"==": [1, {{orders.total}}]}',
        fields={
            "title": {"content": "Hello {{system.user_name}}", "meta": "{{system.user_name}}"},
            "url": {"content": "/x/{{system.user_name}}", "meta": None},
        },
    )
    interpolate_node(node, SCOPE)

    assert node.css == "text-3"
    assert node.condition == '{"==": [1, 3]}'
    assert node.fields["title"]["content"] == "Hello ana"
    # meta, campos fuera de la lista y campos estructurales quedan intactos
    assert node.fields["title"]["meta"] == "{{system.user_name}}"
    assert node.fields["url"]["content"] == "/x/{{system.user_name}}"
    assert node.section_name == "{{system.user_name}}"
    assert node.style_name == "{{globals.brand}}"
