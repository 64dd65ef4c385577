import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from marginalia.core.security import SessionDep
from marginalia.db.database import get_session
from marginalia.models.post import Post, PostStatus
from marginalia.models.post_tag import PostTag
from marginalia.models.tag import Tag, normalize_tag_name
from marginalia.schemas.tag import TagBrief, TagMerge, TagRename, TagResponse, TagWithCount

logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter()

AUTOCOMPLETE_LIMIT = 10


def tags_with_counts(session: Session, *, published_only: bool) -> list[dict]:
    """Every tag, by name, with how many posts use it"""
    link_filter = PostTag.tag_id == Tag.id
    if published_only:
        link_filter = link_filter & PostTag.post_id.in_(
            select(Post.id).where(Post.status == PostStatus.PUBLISHED)
        )
    rows = session.execute(
        select(Tag.id, Tag.name, func.count(PostTag.post_id))
        .outerjoin(PostTag, link_filter)
        .group_by(Tag.id, Tag.name)
        .order_by(Tag.name)
    ).all()
    return [{"id": tag_id, "name": name, "count": count} for tag_id, name, count in rows]


def get_tag_or_404(session: Session, tag_id: str) -> Tag:
    tag = session.get(Tag, tag_id)
    if not tag:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tag not found"
        )
    return tag


@router.get("", response_model=List[TagWithCount], summary="List tags with published post counts")
def list_tags(session: Session = Depends(get_session)):
    """List all tags, counting published posts only"""
    return tags_with_counts(session, published_only=True)


@router.get("/autocomplete", response_model=List[TagBrief], summary="Complete a tag name")
def autocomplete_tags(q: str = "", session: Session = Depends(get_session)):
    """Tags whose name starts with ``q``, case-insensitive"""
    prefix = normalize_tag_name(q)
    if not prefix:
        return []
    return session.scalars(
        select(Tag)
        .where(Tag.name.startswith(prefix, autoescape=True))
        .order_by(Tag.name)
        .limit(AUTOCOMPLETE_LIMIT)
    ).all()


@admin_router.get("", response_model=List[TagWithCount], summary="List tags with total post counts")
def list_admin_tags(current: SessionDep, session: Session = Depends(get_session)):
    """List all tags, counting drafts too"""
    return tags_with_counts(session, published_only=False)


@admin_router.put("/{tag_id}", response_model=TagResponse, summary="Rename a tag")
def rename_tag(
    tag_id: str,
    tag_rename: TagRename,
    current: SessionDep,
    session: Session = Depends(get_session),
):
    """Rename a tag; a name held by another tag is a conflict, merge instead"""
    new_name = normalize_tag_name(tag_rename.name)
    if not new_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="name is required"
        )

    tag = get_tag_or_404(session, tag_id)

    existing = session.execute(select(Tag).where(Tag.name == new_name)).scalar_one_or_none()
    if existing and existing.id != tag.id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f'Tag "{new_name}" already exists. Use merge instead.'
        )

    if tag.name != new_name:
        old_name = tag.name
        tag.name = new_name
        session.commit()
        session.refresh(tag)
        logger.info("Renamed tag %s from %r to %r", tag.id, old_name, new_name)
    return tag


@admin_router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete an unused tag")
def delete_tag(
    tag_id: str,
    current: SessionDep,
    session: Session = Depends(get_session),
):
    """Delete a tag, refused while any post still uses it"""
    tag = get_tag_or_404(session, tag_id)

    post_count = session.scalar(
        select(func.count()).select_from(PostTag).where(PostTag.tag_id == tag_id)
    )
    if post_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete a tag that is still used by posts."
        )

    tag_name = tag.name
    session.delete(tag)
    session.commit()
    logger.info("Deleted tag %s (%s)", tag_id, tag_name)
    return None


@admin_router.post("/merge", summary="Merge one tag into another")
def merge_tags(
    merge: TagMerge,
    current: SessionDep,
    session: Session = Depends(get_session),
):
    """Move every post of the source tag onto the target, then delete the source.

    Runs as a single transaction: either every link moves and the source is
    gone, or nothing changes.
    """
    if merge.source_id == merge.target_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot merge a tag into itself"
        )

    source = get_tag_or_404(session, merge.source_id)
    target = get_tag_or_404(session, merge.target_id)

    source_post_ids = set(session.scalars(
        select(PostTag.post_id).where(PostTag.tag_id == source.id)
    ))
    target_post_ids = set(session.scalars(
        select(PostTag.post_id).where(PostTag.tag_id == target.id)
    ))

    source_name, target_name = source.name, target.name
    try:
        # posts already tagged with the target keep their single link
        for post_id in sorted(source_post_ids - target_post_ids):
            session.add(PostTag(post_id=post_id, tag_id=target.id))
        session.flush()
        session.query(PostTag).filter(PostTag.tag_id == source.id).delete(synchronize_session=False)
        session.delete(source)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Merged tag %r into %r (%d posts)", source_name, target_name, len(source_post_ids)
    )
    return {"merged": True}
