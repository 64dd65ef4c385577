from datetime import datetime, timedelta, timezone, UTC
import pytest
from marginalia.core.utils import (
    as_utc,
    calculate_reading_time,
    excerpt,
    extract_domain,
    extract_url_from_text,
    render_markdown,
    strip_html,
)

@pytest.mark.parametrize("url, expected", [
    ("https://arxiv.org/abs/2301.12345", "arxiv.org"),
    ("http://www.Example.com:8080/path?q=1", "www.example.com"),
    ("not a url", "not a url"),
    ("", ""),
])
def test_extract_domain(url, expected):
    assert extract_domain(url) == expected

def test_strip_html():
    assert strip_html("<p>One</p>\n<p>two   <em>three</em></p>") == "One two three"

def test_excerpt():
    assert excerpt("<p>Hello world</p>", 5) == "Hello…"
    assert excerpt("<p>Short</p>", 200) == "Short…"

@pytest.mark.parametrize("html, minutes", [
    (None, 1),
    ("", 1),
    ("<p>a few words</p>", 1),
    ("<p>" + "word " * 200 + "</p>", 1),
    ("<p>" + "word " * 201 + "</p>", 2),
    ("<p>" + "word " * 1000 + "</p>", 5),
])
def test_calculate_reading_time(html, minutes):
    assert calculate_reading_time(html) == minutes

def test_extract_url_from_text():
    assert extract_url_from_text("read this https://example.org/a?b=1 now") == "https://example.org/a?b=1"
    assert extract_url_from_text("nothing here") == ""

def test_render_markdown():
    html = render_markdown("# Title\n\n- one\n- two")
    assert "<h1>Title</h1>" in html
    assert "<li>one</li>" in html

def test_as_utc():
    naive = datetime(2024, 1, 1, 12, 0)
    assert as_utc(naive) == datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    offset = datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert as_utc(offset).hour == 12
