# tests/test_change_detection.py
import random

import pytest
from sqlalchemy import select

from pagecraft.models.content import SectionFieldTranslation
from pagecraft.services import versioning_service as vs
from pagecraft.services.json_diff import generate_structure_hash

DE, EN = 2, 3


def _page(cms):
    page = cms.page("home")
    s = cms.section("hero", css="p-4")
    cms.attach(page, s, 0)
    cms.translate(s, "title", DE, "Hallo")
    cms.translate(s, "title", EN, "Hello")
    return page, s


def test_hash_ignores_key_order_but_not_values():
    a = {"page": {"id": 1, "sections": [{"b": 2, "a": 1}]}}
    b = {"page": {"sections": [{"a": 1, "b": 2}], "id": 1}}
    assert generate_structure_hash(a) == generate_structure_hash(b)

    c = {"page": {"id": 1, "sections": [{"a": 1, "b": 3}]}}
    assert generate_structure_hash(a) != generate_structure_hash(c)

    # el orden de las listas sí importa
    d = {"page": {"id": 1, "sections": [{"a": 1}, {"b": 2}]}}
    e = {"page": {"id": 1, "sections": [{"b": 2}, {"a": 1}]}}
    assert generate_structure_hash(d) != generate_structure_hash(e)


def _random_tree(rng, depth=0):
    if depth >= 3 or rng.random() < 0.3:
        return rng.choice([rng.randint(0, 100), f"s{rng.randint(0, 100)}", True, None])
    if rng.random() < 0.5:
        return [_random_tree(rng, depth + 1) for _ in range(rng.randint(1, 3))]
    return {f"k{i}": _random_tree(rng, depth + 1) for i in range(rng.randint(1, 4))}


def _shuffled(value, rng):
    if isinstance(value, dict):
        keys = list(value)
        rng.shuffle(keys)
        return {k: _shuffled(value[k], rng) for k in keys}
    if isinstance(value, list):
        return [_shuffled(v, rng) for v in value]
    return value


def _leaf_paths(value, path=()):
    if isinstance(value, dict):
        for k, v in value.items():
            yield from _leaf_paths(v, path + (k,))
    elif isinstance(value, list):
        for i, v in enumerate(value):
            yield from _leaf_paths(v, path + (i,))
    else:
        yield path


def _mutated(value, path):
    if not path:
        return ["mutated"]
    copy = dict(value) if isinstance(value, dict) else list(value)
    copy[path[0]] = _mutated(value[path[0]], path[1:])
    return copy


@pytest.mark.parametrize("seed", range(20))
def test_hash_on_random_trees(seed):
    rng = random.Random(seed)
    tree = {"page": _random_tree(rng)}
    expected = generate_structure_hash(tree)

    assert generate_structure_hash(_shuffled(tree, rng)) == expected
    for path in _leaf_paths(tree):
        assert generate_structure_hash(_mutated(tree, path)) != expected


def test_unpublished_page_always_has_changes(db, cms):
    page, _ = _page(cms)
    assert vs.has_unpublished_changes(db, page.id) is True
    vs.create_version(db, page.id)
    assert vs.has_unpublished_changes(db, page.id) is True


def test_no_changes_right_after_publishing(db, cms):
    page, _ = _page(cms)
    vs.create_and_publish_version(db, page.id)
    assert vs.has_unpublished_changes(db, page.id) is False


def test_editing_any_language_is_a_change(db, cms):
    page, section = _page(cms)
    vs.create_and_publish_version(db, page.id)

    row = db.scalars(
        select(SectionFieldTranslation).where(
            SectionFieldTranslation.section_id == section.id,
            SectionFieldTranslation.language_id == EN,
        )
    ).one()
    row.content = "Hello there"
    db.flush()

    assert vs.has_unpublished_changes(db, page.id) is True


def test_adding_a_child_section_is_a_change(db, cms):
    page, section = _page(cms)
    vs.create_and_publish_version(db, page.id)

    cms.child(section, cms.section("nested"), 0)
    assert vs.has_unpublished_changes(db, page.id) is True


def test_reverting_the_draft_clears_the_change(db, cms):
    page, section = _page(cms)
    vs.create_and_publish_version(db, page.id)

    section.css = "p-8"
    db.flush()
    assert vs.has_unpublished_changes(db, page.id) is True

    section.css = "p-4"
    db.flush()
    assert vs.has_unpublished_changes(db, page.id) is False


def test_snapshot_failure_after_publish_counts_as_changed(db, cms, monkeypatch):
    page, _ = _page(cms)
    vs.create_and_publish_version(db, page.id)
    assert vs.has_unpublished_changes(db, page.id) is False

    def broken_snapshot(session, page_id):
        raise RuntimeError("draft could not be built")

    monkeypatch.setattr(vs, "build_draft_snapshot", broken_snapshot)
    assert vs.has_unpublished_changes(db, page.id) is True
