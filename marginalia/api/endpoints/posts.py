import logging
from typing import Iterable, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload
from marginalia.core.search import matching_post_ids
from marginalia.core.security import OptionalSessionDep, SessionDep, upsert_user
from marginalia.core.utils import extract_domain, render_markdown
from marginalia.db.database import get_session
from marginalia.models.image import Image
from marginalia.models.post import Post, PostStatus, PostType
from marginalia.models.post_tag import PostTag
from marginalia.models.tag import Tag, normalize_tag_name
from marginalia.schemas.post import PostCreate, PostListResponse, PostResponse, PostUpdate

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 50


def normalize_tag_names(names: Iterable[str]) -> List[str]:
    """Lowercase, trim, drop empties and duplicates, keep first-seen order"""
    normalized = []
    for name in names:
        name = normalize_tag_name(name)
        if name and name not in normalized:
            normalized.append(name)
    return normalized


def upsert_tags(session: Session, names: Iterable[str]) -> List[Tag]:
    """Find or create a tag for every normalized name"""
    tags = []
    for name in normalize_tag_names(names):
        tag = session.execute(select(Tag).where(Tag.name == name)).scalar_one_or_none()
        if tag is None:
            tag = Tag(name=name)
            session.add(tag)
        tags.append(tag)
    session.flush()
    return tags


def parse_post_type(value: Optional[str]) -> Optional[PostType]:
    """LOG / ESSAY in any case; ALL or nothing means no filter"""
    if not value or value.upper() == "ALL":
        return None
    try:
        return PostType(value.upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="type must be LOG, ESSAY or ALL"
        )


def visible_posts_filters(
    session: Session,
    *,
    authenticated: bool,
    post_type: Optional[PostType] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    status_filter: Optional[PostStatus] = None,
) -> list:
    """WHERE clauses shared by listing and search"""
    filters = []
    if not authenticated:
        filters.append(Post.status == PostStatus.PUBLISHED)
    elif status_filter is not None:
        filters.append(Post.status == status_filter)

    if post_type is not None:
        filters.append(Post.type == post_type)

    if tag:
        filters.append(Post.id.in_(
            select(PostTag.post_id)
            .join(Tag, Tag.id == PostTag.tag_id)
            .where(Tag.name == normalize_tag_name(tag))
        ))

    if search:
        # relevance only decides membership, pages stay newest first
        filters.append(Post.id.in_(matching_post_ids(session, search)))

    return filters


def with_tags(query):
    return query.options(selectinload(Post.tag_links).selectinload(PostTag.tag))


def get_post_or_404(session: Session, post_id: str) -> Post:
    post = session.execute(
        with_tags(select(Post)).where(Post.id == post_id)
    ).scalar_one_or_none()
    if not post:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found"
        )
    return post


@router.get("", response_model=PostListResponse, summary="List posts")
def list_posts(
    current: OptionalSessionDep,
    type: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    status_filter: Optional[PostStatus] = Query(default=None, alias="status"),
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    session: Session = Depends(get_session),
):
    """List posts, newest first.

    Anonymous callers only see published posts; with a session every status is
    listed and ``status`` narrows it down.
    """
    page = max(1, page)
    limit = max(1, min(MAX_PAGE_SIZE, limit))

    filters = visible_posts_filters(
        session,
        authenticated=current is not None,
        post_type=parse_post_type(type),
        tag=tag,
        search=search.strip() if search else None,
        status_filter=status_filter,
    )

    total = session.scalar(select(func.count()).select_from(Post).where(*filters))
    posts = session.scalars(
        with_tags(select(Post))
        .where(*filters)
        .order_by(Post.created_at.desc(), Post.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return {"posts": posts, "total": total, "page": page, "limit": limit}


@router.get("/{post_id}", response_model=PostResponse, summary="Get a specific post")
def get_post(
    post_id: str,
    current: OptionalSessionDep,
    session: Session = Depends(get_session),
):
    """Get a specific post, drafts only with a session"""
    post = get_post_or_404(session, post_id)
    if post.status == PostStatus.DRAFT and current is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found"
        )
    return post


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED, summary="Create a new post")
def create_post(
    post_in: PostCreate,
    current: SessionDep,
    session: Session = Depends(get_session),
):
    """Create a new post"""
    author = upsert_user(session, current)
    tags = upsert_tags(session, post_in.tags)

    content = post_in.content
    if content is None and post_in.content_markdown:
        content = render_markdown(post_in.content_markdown)

    new_post = Post(
        type=post_in.type,
        title=post_in.title,
        url=post_in.url or None,
        domain=extract_domain(post_in.url) if post_in.url else None,
        content=content,
        content_markdown=post_in.content_markdown,
        status=post_in.status,
        author_id=author.id,
    )
    new_post.tag_links = [PostTag(tag=tag) for tag in tags]
    session.add(new_post)
    session.commit()

    logger.info("Created %s post %s", new_post.type.value, new_post.id)
    return get_post_or_404(session, new_post.id)


@router.put("/{post_id}", response_model=PostResponse, summary="Update a post")
def update_post(
    post_id: str,
    post_update: PostUpdate,
    current: SessionDep,
    session: Session = Depends(get_session),
):
    """Update a post, only the fields that are sent.

    Sending ``tags`` replaces every tag of the post.
    """
    post = get_post_or_404(session, post_id)
    changes = post_update.model_dump(exclude_unset=True)

    for field in ("title", "status"):
        if field in changes and changes[field] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{field} cannot be null"
            )

    if "tags" in changes:
        tags = upsert_tags(session, changes.pop("tags") or [])
        # delete every link first, then recreate
        post.tag_links.clear()
        session.flush()
        post.tag_links = [PostTag(tag=tag) for tag in tags]

    if "url" in changes:
        url = changes.pop("url") or None
        post.url = url
        post.domain = extract_domain(url) if url else None

    if "content_markdown" in changes and "content" not in changes:
        markdown_body = changes["content_markdown"]
        changes["content"] = render_markdown(markdown_body) if markdown_body else None

    for field, value in changes.items():
        setattr(post, field, value)

    session.commit()
    return get_post_or_404(session, post_id)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a post")
def delete_post(
    post_id: str,
    current: SessionDep,
    session: Session = Depends(get_session),
):
    """Delete a post and its tag links"""
    post = session.get(Post, post_id)
    if not post:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found"
        )

    session.query(PostTag).filter(PostTag.post_id == post_id).delete(synchronize_session=False)
    session.query(Image).filter(Image.post_id == post_id).update(
        {Image.post_id: None}, synchronize_session=False
    )
    session.delete(post)
    session.commit()
    logger.info("Deleted post %s", post_id)
    return None
