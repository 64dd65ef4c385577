import logging
from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse
from sqlalchemy import select
from sqlalchemy.orm import Session
from marginalia.core.config import get_settings
from marginalia.db.database import get_session
from marginalia.feeds.rss import essay_item, log_item, render_feed
from marginalia.models.post import Post, PostStatus, PostType

logger = logging.getLogger(__name__)

router = APIRouter()

FEED_SIZE = 50
FEED_HEADERS = {"Cache-Control": "s-maxage=3600, stale-while-revalidate"}
FEED_MEDIA_TYPE = "application/xml; charset=utf-8"


def latest_published(session: Session, post_type: PostType) -> list[Post]:
    return session.scalars(
        select(Post)
        .where(Post.type == post_type, Post.status == PostStatus.PUBLISHED)
        .order_by(Post.created_at.desc(), Post.id)
        .limit(FEED_SIZE)
    ).all()


def feed_failure(path: str) -> PlainTextResponse:
    logger.exception("GET %s failed", path)
    return PlainTextResponse("Internal Server Error", status_code=500)


@router.get("/feed/essays", include_in_schema=False)
def essays_feed(session: Session = Depends(get_session)):
    """The 50 most recent published essays"""
    settings = get_settings()
    try:
        items = [essay_item(post, settings.site_url) for post in latest_published(session, PostType.ESSAY)]
        xml = render_feed(
            title=f"{settings.site_name} | Essays",
            description=f"Original essays from {settings.site_name}.",
            site_url=settings.site_url,
            feed_path="/feed/essays",
            items=items,
        )
    except Exception:
        return feed_failure("/feed/essays")
    return Response(content=xml, media_type=FEED_MEDIA_TYPE, headers=FEED_HEADERS)


@router.get("/feed/log", include_in_schema=False)
def log_feed(session: Session = Depends(get_session)):
    """The 50 most recent published reading-log entries"""
    settings = get_settings()
    try:
        items = [log_item(post, settings.site_url) for post in latest_published(session, PostType.LOG)]
        xml = render_feed(
            title=f"{settings.site_name} | Reading Log",
            description=settings.site_description,
            site_url=settings.site_url,
            feed_path="/feed/log",
            items=items,
        )
    except Exception:
        return feed_failure("/feed/log")
    return Response(content=xml, media_type=FEED_MEDIA_TYPE, headers=FEED_HEADERS)
