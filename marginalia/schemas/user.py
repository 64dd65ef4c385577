from typing import Optional
from pydantic import BaseModel, EmailStr

class SessionUser(BaseModel):
    """Identity carried by a session token"""
    email: EmailStr
    name: Optional[str] = None
    image: Optional[str] = None
