from datetime import datetime
from pydantic import BaseModel, Field

class TagBrief(BaseModel):
    """Tag as embedded in posts and autocomplete results"""
    id: str = Field(..., description="Tag ID")
    name: str = Field(..., description="Tag name")

    class Config:
        from_attributes = True

class TagWithCount(TagBrief):
    """Tag with the number of posts using it"""
    count: int = Field(..., description="Number of posts")

class TagRename(BaseModel):
    """Rename tag request"""
    name: str = Field(..., description="New tag name")

class TagMerge(BaseModel):
    """Merge tags request: every post tagged source ends up tagged target"""
    source_id: str = Field(..., min_length=1, description="Tag to merge away")
    target_id: str = Field(..., min_length=1, description="Tag to keep")

class TagResponse(TagBrief):
    """Tag response"""
    created_at: datetime = Field(..., description="Creation time")
    updated_at: datetime = Field(..., description="Update time")
