from pydantic import BaseModel

class UploadResponse(BaseModel):
    """Where an uploaded image is served from"""
    url: str
    id: str
