from sqlalchemy import Column, String, Enum, DateTime, Integer, Text, ForeignKey, DDL, event
from sqlalchemy.orm import relationship
from marginalia.db.database import Base
from datetime import datetime, UTC
from enum import Enum as PyEnum
import uuid

class PostType(str, PyEnum):
    """Post type"""
    LOG = "LOG"     # Reading-log entry: an external link plus notes
    ESSAY = "ESSAY" # Long-form original writing

class PostStatus(str, PyEnum):
    """Post status"""
    DRAFT = "DRAFT"         # Draft, only visible with an admin session
    PUBLISHED = "PUBLISHED" # Published, visible to everyone

class Post(Base):
    """Post model"""
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(Enum(PostType), nullable=False, index=True)
    title = Column(String, nullable=False)
    url = Column(String, nullable=True)
    domain = Column(String, nullable=True)  # derived from url
    content = Column(Text, nullable=True)  # HTML
    content_markdown = Column(Text, nullable=True)
    status = Column(Enum(PostStatus), nullable=False, default=PostStatus.PUBLISHED, index=True)
    view_count = Column(Integer, nullable=False, default=0)
    author_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))

    author = relationship("User", back_populates="posts")
    tag_links = relationship(
        "PostTag",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    images = relationship("Image", back_populates="post", passive_deletes=True)

    @property
    def tags(self):
        return sorted((link.tag for link in self.tag_links), key=lambda tag: tag.name)


# PostgreSQL keeps a generated tsvector for full-text search; other dialects
# fall back to LIKE matching in marginalia.core.search.
event.listen(
    Post.__table__,
    "after_create",
    DDL(
        "ALTER TABLE posts ADD COLUMN search_vector tsvector GENERATED ALWAYS AS ("
        "setweight(to_tsvector('english', coalesce(title, '')), 'A') || "
        "setweight(to_tsvector('english', coalesce(domain, '')), 'B') || "
        "setweight(to_tsvector('english', "
        "regexp_replace(coalesce(content, ''), '<[^>]+>', ' ', 'g')), 'C')"
        ") STORED"
    ).execute_if(dialect="postgresql"),
)
event.listen(
    Post.__table__,
    "after_create",
    DDL(
        "CREATE INDEX ix_posts_search_vector ON posts USING GIN (search_vector)"
    ).execute_if(dialect="postgresql"),
)
