from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from marginalia.models.post import PostStatus, PostType
from marginalia.schemas.tag import TagBrief

class PostCreate(BaseModel):
    """Create post request"""
    type: PostType
    title: str = Field(..., min_length=1)
    url: Optional[str] = None
    content: Optional[str] = Field(default=None, description="HTML body")
    content_markdown: Optional[str] = Field(default=None, description="Markdown source of the body")
    status: PostStatus = PostStatus.PUBLISHED
    tags: List[str] = Field(default_factory=list, description="Tag names")

class PostUpdate(BaseModel):
    """Update post request, only the fields that are sent are changed"""
    title: Optional[str] = Field(default=None, min_length=1)
    url: Optional[str] = None
    content: Optional[str] = None
    content_markdown: Optional[str] = None
    status: Optional[PostStatus] = None
    tags: Optional[List[str]] = Field(default=None, description="Replaces every tag when sent")

class PostResponse(BaseModel):
    """Post response"""
    id: str
    type: PostType
    title: str
    url: Optional[str] = None
    domain: Optional[str] = None
    content: Optional[str] = None
    content_markdown: Optional[str] = None
    status: PostStatus
    view_count: int
    author_id: str
    created_at: datetime
    updated_at: datetime
    tags: List[TagBrief] = []

    class Config:
        from_attributes = True

class PostListResponse(BaseModel):
    """One page of posts"""
    posts: List[PostResponse]
    total: int
    page: int
    limit: int

class TopPost(BaseModel):
    id: str
    title: str
    type: PostType
    view_count: int
    created_at: datetime

    class Config:
        from_attributes = True

class AnalyticsResponse(BaseModel):
    """View statistics over published posts"""
    total_views: int
    top_posts: List[TopPost]

class MarkdownPreview(BaseModel):
    """Markdown to render"""
    markdown: str = Field(default="", description="Markdown source")
