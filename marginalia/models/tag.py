from datetime import datetime, UTC
from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from marginalia.db.database import Base
import uuid

def normalize_tag_name(name: str) -> str:
    """Tags are stored lowercase and trimmed"""
    return name.strip().lower()

class Tag(Base):
    """Tag model"""
    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)  # tag name must be unique
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC)
    )

    post_links = relationship("PostTag", back_populates="tag", passive_deletes=True)
