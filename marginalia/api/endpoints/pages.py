from pathlib import Path
from typing import Optional
from urllib.parse import urlencode
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session
from marginalia.api.endpoints.posts import (
    DEFAULT_PAGE_SIZE,
    get_post_or_404,
    parse_post_type,
    visible_posts_filters,
    with_tags,
)
from marginalia.api.endpoints.tags import tags_with_counts
from marginalia.core.config import get_settings
from marginalia.core.security import OptionalSessionDep
from marginalia.core.utils import as_utc, calculate_reading_time, excerpt
from marginalia.db.database import get_session
from marginalia.models.post import Post, PostStatus, PostType

router = APIRouter(include_in_schema=False)


def format_long_date(value) -> str:
    value = as_utc(value)
    return f"{value:%B} {value.day}, {value:%Y}"


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[2] / "templates"))
templates.env.filters["reading_time"] = calculate_reading_time
templates.env.filters["excerpt"] = excerpt
templates.env.filters["longdate"] = format_long_date
templates.env.globals["settings"] = get_settings


def render(request: Request, name: str, context: dict, status_code: int = 200):
    context.setdefault("current", None)
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def not_found(request: Request, current=None):
    return render(request, "not_found.html", {"current": current}, status_code=status.HTTP_404_NOT_FOUND)


def login_required(request: Request) -> RedirectResponse:
    target = request.url.path
    if request.url.query:
        target = f"{target}?{request.url.query}"
    return RedirectResponse(f"/login?{urlencode({'next': target})}", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/")
def home(
    request: Request,
    current: OptionalSessionDep,
    type: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Public feed; the first page is rendered here, the rest is fetched by feed.js"""
    try:
        post_type = parse_post_type(type)
    except HTTPException:
        post_type = None
    filters = visible_posts_filters(
        session,
        authenticated=False,
        post_type=post_type,
        tag=tag,
        search=search.strip() if search else None,
    )
    total = session.scalar(select(func.count()).select_from(Post).where(*filters))
    posts = session.scalars(
        with_tags(select(Post))
        .where(*filters)
        .order_by(Post.created_at.desc(), Post.id)
        .limit(DEFAULT_PAGE_SIZE)
    ).all()
    return render(request, "index.html", {
        "current": current,
        "posts": posts,
        "total": total,
        "page_size": DEFAULT_PAGE_SIZE,
        "active_type": post_type.value if post_type else "ALL",
        "active_tag": tag or "",
        "search": search or "",
        "tags": [tag for tag in tags_with_counts(session, published_only=True) if tag["count"]],
    })


@router.get("/post/{post_id}")
def post_page(
    post_id: str,
    request: Request,
    current: OptionalSessionDep,
    session: Session = Depends(get_session),
):
    """A single post; drafts need a session"""
    try:
        post = get_post_or_404(session, post_id)
    except HTTPException:
        return not_found(request, current)
    if post.status == PostStatus.DRAFT and current is None:
        return not_found(request, current)

    if current is None and post.status == PostStatus.PUBLISHED:
        session.execute(
            update(Post)
            .where(Post.id == post.id)
            .values(view_count=Post.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        session.commit()
        post = get_post_or_404(session, post_id)

    return render(request, "post.html", {"current": current, "post": post})


@router.get("/login")
def login_page(request: Request, current: OptionalSessionDep, error: Optional[str] = None, next: Optional[str] = None):
    return render(request, "login.html", {"current": current, "error": error, "next": next or "/admin"})


@router.get("/share")
def share_page(
    request: Request,
    current: OptionalSessionDep,
    url: str = "",
    title: str = "",
):
    """Quick form for logging a shared link"""
    if current is None:
        return login_required(request)
    return render(request, "share.html", {"current": current, "url": url, "title": title})


@router.get("/admin")
def admin_index(request: Request, current: OptionalSessionDep, session: Session = Depends(get_session)):
    """Every post, drafts included"""
    if current is None:
        return login_required(request)
    posts = session.scalars(
        with_tags(select(Post)).order_by(Post.created_at.desc(), Post.id)
    ).all()
    return render(request, "admin/index.html", {"current": current, "posts": posts})


@router.get("/admin/write")
def admin_write(request: Request, current: OptionalSessionDep, type: Optional[str] = None):
    if current is None:
        return login_required(request)
    post_type = PostType.LOG if (type or "").upper() == PostType.LOG.value else PostType.ESSAY
    return render(request, "admin/write.html", {"current": current, "post": None, "post_type": post_type.value})


@router.get("/admin/write/{post_id}")
def admin_edit(post_id: str, request: Request, current: OptionalSessionDep, session: Session = Depends(get_session)):
    if current is None:
        return login_required(request)
    try:
        post = get_post_or_404(session, post_id)
    except HTTPException:
        return not_found(request, current)
    return render(request, "admin/write.html", {"current": current, "post": post, "post_type": post.type.value})


@router.get("/admin/tags")
def admin_tags(request: Request, current: OptionalSessionDep, session: Session = Depends(get_session)):
    if current is None:
        return login_required(request)
    return render(request, "admin/tags.html", {
        "current": current,
        "tags": tags_with_counts(session, published_only=False),
    })


@router.get("/admin/export")
def admin_export(request: Request, current: OptionalSessionDep):
    if current is None:
        return login_required(request)
    return render(request, "admin/export.html", {"current": current})
