import re
from marginalia.api.endpoints.posts import DEFAULT_PAGE_SIZE

def textarea_body(html):
    match = re.search(r'<textarea id="editor-body"[^>]*>(.*?)</textarea>', html, re.S)
    return match.group(1)

def rich_body(html):
    match = re.search(r'<div id="editor-rich"[^>]*>(.*?)</div>', html, re.S)
    return match.group(1)

class TestHomeFeed:
    def test_short_feed_has_no_scroll_sentinel(self, client, make_post):
        make_post(title="Only one")
        response = client.get("/")
        assert response.status_code == 200
        assert "Only one" in response.text
        assert 'id="feed-sentinel"' not in response.text
        assert 'id="load-more"' not in response.text

    def test_long_feed_scrolls_for_more(self, client, make_post):
        """Past one page the feed carries the scroll sentinel and its fallback button"""
        for i in range(DEFAULT_PAGE_SIZE + 1):
            make_post(title=f"Post {i}")

        response = client.get("/")
        assert 'id="feed-sentinel"' in response.text
        assert 'id="load-more"' in response.text
        assert f'data-total="{DEFAULT_PAGE_SIZE + 1}"' in response.text
        assert f'data-loaded="{DEFAULT_PAGE_SIZE}"' in response.text

    def test_home_hides_drafts(self, client, make_post):
        make_post(title="Secret draft", status="DRAFT")
        assert "Secret draft" not in client.get("/").text

class TestPostPage:
    def test_anonymous_view_is_counted(self, client, make_post):
        post = make_post(title="Counted")
        assert client.get(f"/post/{post['id']}").status_code == 200
        assert client.get(f"/api/posts/{post['id']}").json()["view_count"] == 1

    def test_missing_post_page(self, client):
        response = client.get("/post/missing")
        assert response.status_code == 404
        assert "text/html" in response.headers["content-type"]

class TestEditor:
    def test_markdown_post_opens_in_markdown(self, authenticated_client, make_post):
        post = make_post(title="Notes", content_markdown="Some *notes*")

        html = authenticated_client.get(f"/admin/write/{post['id']}").text
        assert 'data-mode="markdown"' in html
        assert textarea_body(html) == "Some *notes*"
        assert rich_body(html) == ""

    def test_html_post_opens_in_rich_text(self, authenticated_client, make_post):
        """HTML without a Markdown source is never put in the Markdown box"""
        post = make_post(title="Imported", content="<p>Written <strong>elsewhere</strong></p>")

        html = authenticated_client.get(f"/admin/write/{post['id']}").text
        assert 'id="editor-mode" data-mode="rich"' in html
        assert textarea_body(html) == ""
        assert rich_body(html) == "<p>Written <strong>elsewhere</strong></p>"

    def test_new_post_opens_in_markdown(self, authenticated_client):
        html = authenticated_client.get("/admin/write").text
        assert 'id="editor-mode" data-mode="markdown"' in html

    def test_rich_text_save_keeps_html(self, authenticated_client, make_post):
        """Saving from rich text stores the HTML as sent and drops the Markdown source"""
        post = make_post(title="Imported", content_markdown="Old *markdown*")

        response = authenticated_client.put(f"/api/posts/{post['id']}", json={
            "content": "<p>New <em>html</em> &amp; more</p>",
            "content_markdown": None,
        })
        assert response.status_code == 200
        data = response.json()
        assert data["content"] == "<p>New <em>html</em> &amp; more</p>"
        assert data["content_markdown"] is None

class TestMarkdownPreview:
    def test_preview(self, authenticated_client):
        response = authenticated_client.post("/api/preview", json={"markdown": "# Hi\n\nSome **bold**"})
        assert response.status_code == 200
        html = response.json()["html"]
        assert "<h1>Hi</h1>" in html
        assert "<strong>bold</strong>" in html

    def test_empty_preview(self, authenticated_client):
        assert authenticated_client.post("/api/preview", json={"markdown": "  "}).json() == {"html": ""}

    def test_preview_unauthorized(self, client):
        assert client.post("/api/preview", json={"markdown": "x"}).status_code == 401
