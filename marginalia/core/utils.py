import math
import re
from datetime import UTC, datetime
from urllib.parse import urlparse

import markdown
import requests

WORDS_PER_MINUTE = 200
TITLE_FETCH_TIMEOUT = 5
TITLE_FETCH_USER_AGENT = "Mozilla/5.0 (compatible; MarginaliaBot/1.0)"

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_TITLE_RE = re.compile(r"<title[^>]*>([\s\S]*?)</title>", re.IGNORECASE)
_URL_IN_TEXT_RE = re.compile(r"https?://\S+")


def extract_domain(url: str) -> str:
    """Bare hostname of a URL: "https://arxiv.org/abs/2301.12345" -> "arxiv.org".

    Anything that does not parse as an absolute URL is returned unchanged.
    """
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return url
    return hostname or url


def strip_html(html: str) -> str:
    """Replace tags with spaces and collapse whitespace."""
    return _WS_RE.sub(" ", _TAG_RE.sub(" ", html)).strip()


def excerpt(html: str, length: int) -> str:
    text = strip_html(html)
    return text[:length].rstrip() + "…"


def calculate_reading_time(html: str | None) -> int:
    """Whole minutes to read, never less than one."""
    if not html:
        return 1
    words = len(strip_html(html).split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def extract_url_from_text(text: str) -> str:
    # Android share sheets often put the link in the text field
    match = _URL_IN_TEXT_RE.search(text)
    return match.group(0) if match else ""


def fetch_title(url: str) -> str:
    """Title of the page at ``url``, falling back to its hostname, then to ``url``."""
    try:
        response = requests.get(
            url,
            timeout=TITLE_FETCH_TIMEOUT,
            headers={"User-Agent": TITLE_FETCH_USER_AGENT},
        )
        match = _TITLE_RE.search(response.text)
        if match:
            title = _WS_RE.sub(" ", match.group(1).strip())
            if title:
                return title
    except requests.RequestException:
        pass
    return extract_domain(url)


def render_markdown(text: str) -> str:
    """HTML for a markdown body, as the editor stores it."""
    return markdown.markdown(text, extensions=["extra", "sane_lists"])


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; they are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
