from fastapi import APIRouter
from marginalia.api.endpoints import (
    admin,
    auth,
    feeds,
    pages,
    posts,
    preview,
    share,
    tags,
    title,
    upload,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(posts.router, prefix="/posts", tags=["posts"])
api_router.include_router(tags.router, prefix="/tags", tags=["tags"])
api_router.include_router(tags.admin_router, prefix="/admin/tags", tags=["admin"])
api_router.include_router(admin.router, tags=["admin"])
api_router.include_router(title.router, tags=["tools"])
api_router.include_router(preview.router, tags=["tools"])
api_router.include_router(upload.router, tags=["uploads"])
api_router.include_router(share.router, tags=["tools"])

site_router = APIRouter()

site_router.include_router(feeds.router)
site_router.include_router(upload.media_router)
site_router.include_router(pages.router)
