# tests/test_versions_api.py
from pagecraft.core.settings import settings

DE = 2
BASE = f"{settings.API_V1_STR}/admin/pages"


def _page(cms, keyword="home"):
    page = cms.page(keyword)
    s = cms.section("hero", css="p-2")
    cms.attach(page, s, 0)
    cms.translate(s, "title", DE, "Hallo")
    return page, s


def test_create_list_and_get_versions(client, db, cms):
    page, _ = _page(cms)

    r = client.post(f"{BASE}/{page.id}/versions", json={"version_name": "v1", "metadata": {"k": 1}},
                    headers={"X-User-Id": "42"})
    assert r.status_code == 201, r.text
    created = r.json()
    assert created["version_number"] == 1
    assert created["version_name"] == "v1"
    assert created["metadata"] == {"k": 1}
    assert created["created_by"] == 42
    assert created["is_published"] is False

    client.post(f"{BASE}/{page.id}/versions", json={"publish": True})

    r = client.get(f"{BASE}/{page.id}/versions")
    assert r.status_code == 200
    history = r.json()
    assert history["total_count"] == 2
    assert [v["version_number"] for v in history["versions"]] == [2, 1]
    assert [v["is_published"] for v in history["versions"]] == [True, False]
    assert history["has_unpublished_changes"] is False

    r = client.get(f"{BASE}/{page.id}/versions/{created['id']}")
    assert r.status_code == 200
    assert r.json()["snapshot_json"]["page"]["keyword"] == "home"


def test_publish_unpublish_and_unpublished_changes(client, db, cms):
    page, section = _page(cms)
    v = client.post(f"{BASE}/{page.id}/versions", json={}).json()

    r = client.get(f"{BASE}/{page.id}/unpublished-changes")
    assert r.json() == {"page_id": page.id, "has_unpublished_changes": True, "published_version_id": None}

    r = client.post(f"{BASE}/{page.id}/versions/{v['id']}/publish")
    assert r.status_code == 200
    assert r.json()["is_published"] is True
    assert r.json()["published_at"] is not None

    assert client.get(f"{BASE}/{page.id}/unpublished-changes").json()["has_unpublished_changes"] is False

    section.css = "p-6"
    db.flush()
    assert client.get(f"{BASE}/{page.id}/unpublished-changes").json()["has_unpublished_changes"] is True

    r = client.post(f"{BASE}/{page.id}/unpublish")
    assert r.json() == {"page_id": page.id, "published_version_id": None}


def test_publish_version_from_other_page_is_400(client, db, cms):
    a, _ = _page(cms, "a")
    b, _ = _page(cms, "b")
    vb = client.post(f"{BASE}/{b.id}/versions", json={}).json()

    r = client.post(f"{BASE}/{a.id}/versions/{vb['id']}/publish")
    assert r.status_code == 400
    assert r.json()["detail"] == "Version does not belong to this page"


def test_delete_rules(client, db, cms):
    page, _ = _page(cms)
    published = client.post(f"{BASE}/{page.id}/versions", json={"publish": True}).json()
    draft = client.post(f"{BASE}/{page.id}/versions", json={}).json()

    r = client.delete(f"{BASE}/{page.id}/versions/{published['id']}")
    assert r.status_code == 409

    r = client.delete(f"{BASE}/{page.id}/versions/{draft['id']}")
    assert r.status_code == 204
    assert client.get(f"{BASE}/{page.id}/versions/{draft['id']}").status_code == 404


def test_compare_versions_and_draft(client, db, cms):
    page, section = _page(cms)
    v1 = client.post(f"{BASE}/{page.id}/versions", json={}).json()
    section.css = "p-6"
    db.flush()
    v2 = client.post(f"{BASE}/{page.id}/versions", json={}).json()

    r = client.get(f"{BASE}/{page.id}/versions/compare/{v1['id']}/{v2['id']}", params={"format": "json_patch"})
    assert r.status_code == 200
    body = r.json()
    assert body["version1"]["version_number"] == 1
    assert body["format"] == "json_patch"
    assert body["diff"] == [{"op": "replace", "path": "/page/sections/0/css", "value": "p-6"}]

    r = client.get(f"{BASE}/{page.id}/versions/compare/{v1['id']}/{v2['id']}")
    assert r.json()["format"] == "unified"
    assert "--- version 1" in r.json()["diff"]

    r = client.get(f"{BASE}/{page.id}/versions/{v2['id']}/compare-draft")
    body = r.json()
    assert body["format"] == "side_by_side"
    assert body["draft"]["keyword"] == "home"
    assert body["version"]["id"] == v2["id"]
    assert all(row["tag"] == "equal" for row in body["diff"])

    r = client.get(f"{BASE}/{page.id}/versions/{v1['id']}/compare-draft", params={"format": "summary"})
    assert r.json()["diff"]["are_equal"] is False


def test_invalid_format_is_400(client, db, cms):
    page, _ = _page(cms)
    v = client.post(f"{BASE}/{page.id}/versions", json={}).json()
    r = client.get(f"{BASE}/{page.id}/versions/compare/{v['id']}/{v['id']}", params={"format": "xml"})
    assert r.status_code == 400


def test_missing_page_and_version_are_404(client, db, cms):
    page, _ = _page(cms)
    client.post(f"{BASE}/{page.id}/versions", json={})
    assert client.get(f"{BASE}/{page.id}/versions/999").status_code == 404
    assert client.post(f"{BASE}/{page.id}/versions/999/publish").status_code == 404
    assert client.post(f"{BASE}/999/versions", json={}).status_code == 404
    assert client.get(f"{BASE}/999/versions").status_code == 404
