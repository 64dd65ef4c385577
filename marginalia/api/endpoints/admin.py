import json
import logging
from datetime import datetime, UTC
from fastapi import APIRouter, Depends, Response
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload
from marginalia.core.config import get_settings
from marginalia.core.security import SessionDep
from marginalia.core.utils import as_utc
from marginalia.db.database import get_session
from marginalia.models.post import Post, PostStatus
from marginalia.models.post_tag import PostTag
from marginalia.models.tag import Tag
from marginalia.schemas.post import AnalyticsResponse

logger = logging.getLogger(__name__)

router = APIRouter()

TOP_POSTS_LIMIT = 10


def build_export(session: Session) -> dict:
    """Every post (with tag names and images) and every tag"""
    posts = session.scalars(
        select(Post)
        .options(
            selectinload(Post.tag_links).selectinload(PostTag.tag),
            selectinload(Post.images),
        )
        .order_by(Post.created_at.desc(), Post.id)
    ).all()
    tags = session.scalars(select(Tag).order_by(Tag.name)).all()

    return {
        "exported_at": datetime.now(UTC).isoformat(),
        "posts": [
            {
                "id": post.id,
                "type": post.type.value,
                "title": post.title,
                "url": post.url,
                "domain": post.domain,
                "content": post.content,
                "content_markdown": post.content_markdown,
                "status": post.status.value,
                "view_count": post.view_count,
                "tags": [tag.name for tag in post.tags],
                "images": [
                    {
                        "id": image.id,
                        "filename": image.filename,
                        "path": image.path,
                        "mime_type": image.mime_type,
                        "size_bytes": image.size_bytes,
                    }
                    for image in post.images
                ],
                "created_at": as_utc(post.created_at).isoformat(),
                "updated_at": as_utc(post.updated_at).isoformat(),
            }
            for post in posts
        ],
        "tags": [
            {
                "id": tag.id,
                "name": tag.name,
                "created_at": as_utc(tag.created_at).isoformat(),
            }
            for tag in tags
        ],
    }


@router.get("/admin/export", summary="Download every post and tag as JSON")
def export_site(current: SessionDep, session: Session = Depends(get_session)):
    """Export all site data as a JSON attachment"""
    data = build_export(session)
    filename = f"{get_settings().site_slug}-export-{datetime.now(UTC).date().isoformat()}.json"
    logger.info("Exported %d posts and %d tags", len(data["posts"]), len(data["tags"]))
    return Response(
        content=json.dumps(data, indent=2, ensure_ascii=False),
        media_type="application/json; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/analytics", response_model=AnalyticsResponse, summary="View statistics")
def analytics(current: SessionDep, session: Session = Depends(get_session)):
    """Total views and the most viewed published posts"""
    published = Post.status == PostStatus.PUBLISHED
    total_views = session.scalar(select(func.coalesce(func.sum(Post.view_count), 0)).where(published))
    top_posts = session.scalars(
        select(Post)
        .where(published)
        .order_by(Post.view_count.desc(), Post.created_at.desc())
        .limit(TOP_POSTS_LIMIT)
    ).all()
    return {"total_views": total_views, "top_posts": top_posts}
