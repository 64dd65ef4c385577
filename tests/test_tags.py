import pytest

@pytest.fixture
def tag_ids(authenticated_client):
    """Map of tag name to id, as the admin listing reports them"""
    def _tag_ids():
        return {tag["name"]: tag["id"] for tag in authenticated_client.get("/api/admin/tags").json()}
    return _tag_ids

def post_tag_names(client, post_id):
    return sorted(tag["name"] for tag in client.get(f"/api/posts/{post_id}").json()["tags"])

class TestTagListing:
    def test_public_counts_only_published_posts(self, client, authenticated_client, make_post):
        make_post(title="Live", tags=["agents", "evals"])
        make_post(title="Hidden", status="DRAFT", tags=["agents"])

        tags = client.get("/api/tags").json()
        assert [(tag["name"], tag["count"]) for tag in tags] == [("agents", 1), ("evals", 1)]

        tags = authenticated_client.get("/api/admin/tags").json()
        assert [(tag["name"], tag["count"]) for tag in tags] == [("agents", 2), ("evals", 1)]

    def test_admin_listing_requires_session(self, client):
        assert client.get("/api/admin/tags").status_code == 401

class TestTagAutocomplete:
    def test_prefix_match_is_case_insensitive(self, client, make_post):
        make_post(tags=["agents", "agi", "alignment", "evals"])

        response = client.get("/api/tags/autocomplete", params={"q": "AG"})
        assert response.status_code == 200
        assert [tag["name"] for tag in response.json()] == ["agents", "agi"]

    def test_at_most_ten_results(self, client, make_post):
        make_post(tags=[f"topic-{i:02d}" for i in range(15)])
        response = client.get("/api/tags/autocomplete", params={"q": "topic"})
        assert len(response.json()) == 10

    def test_empty_query(self, client, make_post):
        make_post(tags=["agents"])
        assert client.get("/api/tags/autocomplete", params={"q": "  "}).json() == []
        assert client.get("/api/tags/autocomplete").json() == []

    def test_wildcards_are_literal(self, client, make_post):
        make_post(tags=["agents"])
        assert client.get("/api/tags/autocomplete", params={"q": "%"}).json() == []

class TestTagRename:
    def test_rename_tag(self, authenticated_client, make_post, tag_ids):
        post = make_post(tags=["llm"])
        tag_id = tag_ids()["llm"]

        response = authenticated_client.put(f"/api/admin/tags/{tag_id}", json={"name": "  LLMs "})
        assert response.status_code == 200
        assert response.json()["name"] == "llms"
        assert post_tag_names(authenticated_client, post["id"]) == ["llms"]

    def test_rename_to_existing_name_conflicts(self, authenticated_client, make_post, tag_ids):
        """A name held by another tag is a 409"""
        make_post(tags=["llm", "llms"])
        ids = tag_ids()

        response = authenticated_client.put(f"/api/admin/tags/{ids['llm']}", json={"name": "LLMs"})
        assert response.status_code == 409
        assert "already exists" in response.json()["detail"]

    def test_rename_to_own_name(self, authenticated_client, make_post, tag_ids):
        """Renaming a tag to its own name in another case succeeds"""
        make_post(tags=["agents"])
        tag_id = tag_ids()["agents"]

        response = authenticated_client.put(f"/api/admin/tags/{tag_id}", json={"name": "AGENTS"})
        assert response.status_code == 200
        assert response.json()["id"] == tag_id
        assert response.json()["name"] == "agents"

    def test_rename_requires_a_name(self, authenticated_client, make_post, tag_ids):
        make_post(tags=["agents"])
        tag_id = tag_ids()["agents"]
        assert authenticated_client.put(f"/api/admin/tags/{tag_id}", json={"name": "   "}).status_code == 400
        assert authenticated_client.put(f"/api/admin/tags/{tag_id}", json={}).status_code == 400

    def test_rename_missing_tag(self, authenticated_client):
        response = authenticated_client.put("/api/admin/tags/missing", json={"name": "x"})
        assert response.status_code == 404

    def test_rename_unauthorized(self, client):
        assert client.put("/api/admin/tags/any", json={"name": "x"}).status_code == 401

class TestTagDeletion:
    def test_delete_used_tag_fails(self, authenticated_client, make_post, tag_ids):
        make_post(tags=["agents"])
        tag_id = tag_ids()["agents"]

        response = authenticated_client.delete(f"/api/admin/tags/{tag_id}")
        assert response.status_code == 400
        assert tag_ids() == {"agents": tag_id}

    def test_delete_unused_tag(self, authenticated_client, make_post, tag_ids):
        """An unused tag can be deleted once; the second delete is a 404"""
        post = make_post(tags=["agents"])
        authenticated_client.put(f"/api/posts/{post['id']}", json={"tags": []})
        tag_id = tag_ids()["agents"]

        assert authenticated_client.delete(f"/api/admin/tags/{tag_id}").status_code == 204
        assert tag_ids() == {}
        assert authenticated_client.delete(f"/api/admin/tags/{tag_id}").status_code == 404

class TestTagMerge:
    def test_merge_moves_every_post(self, authenticated_client, make_post, tag_ids):
        """Every post of the source ends up with the target exactly once"""
        only_source = make_post(title="Only source", tags=["llm"])
        both = make_post(title="Both", tags=["llm", "llms"])
        only_target = make_post(title="Only target", tags=["llms"])
        untouched = make_post(title="Other", tags=["evals"])
        ids = tag_ids()

        response = authenticated_client.post(
            "/api/admin/tags/merge", json={"source_id": ids["llm"], "target_id": ids["llms"]}
        )
        assert response.status_code == 200
        assert response.json() == {"merged": True}

        assert post_tag_names(authenticated_client, only_source["id"]) == ["llms"]
        assert post_tag_names(authenticated_client, both["id"]) == ["llms"]
        assert post_tag_names(authenticated_client, only_target["id"]) == ["llms"]
        assert post_tag_names(authenticated_client, untouched["id"]) == ["evals"]

        counts = {tag["name"]: tag["count"] for tag in authenticated_client.get("/api/admin/tags").json()}
        assert counts == {"evals": 1, "llms": 3}

    def test_merge_into_itself(self, authenticated_client, make_post, tag_ids):
        make_post(tags=["agents"])
        tag_id = tag_ids()["agents"]
        response = authenticated_client.post(
            "/api/admin/tags/merge", json={"source_id": tag_id, "target_id": tag_id}
        )
        assert response.status_code == 400

    def test_merge_requires_both_ids(self, authenticated_client):
        response = authenticated_client.post("/api/admin/tags/merge", json={"source_id": "a"})
        assert response.status_code == 400

    def test_merge_missing_tag(self, authenticated_client, make_post, tag_ids):
        make_post(tags=["agents"])
        tag_id = tag_ids()["agents"]
        response = authenticated_client.post(
            "/api/admin/tags/merge", json={"source_id": "missing", "target_id": tag_id}
        )
        assert response.status_code == 404
        assert tag_ids() == {"agents": tag_id}

    def test_merge_unauthorized(self, client):
        response = client.post("/api/admin/tags/merge", json={"source_id": "a", "target_id": "b"})
        assert response.status_code == 401
