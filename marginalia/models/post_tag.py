from datetime import datetime, UTC
from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from marginalia.db.database import Base

class PostTag(Base):
    """Post/tag association, one row per (post, tag) pair"""
    __tablename__ = "post_tags"

    post_id: Mapped[str] = mapped_column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True)
    tag_id: Mapped[str] = mapped_column(String(36), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    post = relationship("Post", back_populates="tag_links")
    tag = relationship("Tag", back_populates="post_links")
