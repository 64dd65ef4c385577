"""RSS 2.0 documents for the essay feed and the reading log."""

from dataclasses import dataclass
from datetime import datetime, UTC
from email.utils import format_datetime
from html import escape
from typing import Iterable, Optional

from marginalia.core.utils import as_utc, excerpt, extract_domain, strip_html

ESSAY_EXCERPT_LENGTH = 200


@dataclass
class FeedItem:
    title: str
    link: str
    guid: str
    pub_date: datetime
    description: str
    permalink_guid: bool


def cdata(text: str) -> str:
    # "]]>" would end the section early, so split it across two sections
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def rfc822(value: datetime) -> str:
    return format_datetime(as_utc(value), usegmt=True)


def permalink(site_url: str, post_id: str) -> str:
    return f"{site_url}/post/{post_id}"


def essay_item(post, site_url: str) -> FeedItem:
    """Essays link to their own page; the guid is that permalink"""
    link = permalink(site_url, post.id)
    return FeedItem(
        title=post.title,
        link=link,
        guid=link,
        pub_date=post.created_at,
        description=excerpt(post.content, ESSAY_EXCERPT_LENGTH) if post.content else "",
        permalink_guid=True,
    )


def log_item(post, site_url: str) -> FeedItem:
    """Log entries link out to what was read; the description names its domain"""
    description = strip_html(post.content) if post.content else ""
    domain: Optional[str] = post.domain or (extract_domain(post.url) if post.url else None)
    if domain:
        description = f"[{domain}] {description}"
    return FeedItem(
        title=post.title,
        link=post.url or permalink(site_url, post.id),
        guid=permalink(site_url, post.id),
        pub_date=post.created_at,
        description=description,
        permalink_guid=False,
    )


def render_item(item: FeedItem) -> str:
    is_permalink = "true" if item.permalink_guid else "false"
    return f"""    <item>
      <title>{cdata(item.title)}</title>
      <link>{escape(item.link)}</link>
      <guid isPermaLink="{is_permalink}">{escape(item.guid)}</guid>
      <pubDate>{rfc822(item.pub_date)}</pubDate>
      <description>{cdata(item.description)}</description>
    </item>"""


def render_feed(
    *,
    title: str,
    description: str,
    site_url: str,
    feed_path: str,
    items: Iterable[FeedItem],
    built_at: Optional[datetime] = None,
) -> str:
    """A complete RSS 2.0 document with an atom:link back to itself"""
    built_at = built_at or datetime.now(UTC)
    items_xml = "\n".join(render_item(item) for item in items)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">
  <channel>
    <title>{cdata(title)}</title>
    <description>{cdata(description)}</description>
    <link>{escape(site_url)}</link>
    <atom:link href="{escape(site_url + feed_path)}" rel="self" type="application/rss+xml"/>
    <language>en-us</language>
    <lastBuildDate>{rfc822(built_at)}</lastBuildDate>
{items_xml}
  </channel>
</rss>"""
