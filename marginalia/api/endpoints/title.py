from fastapi import APIRouter, HTTPException, status
from marginalia.core.security import SessionDep
from marginalia.core.utils import fetch_title

router = APIRouter()


@router.get("/title", summary="Fetch the title of a web page")
def get_title(current: SessionDep, url: str | None = None):
    """Title of the page at ``url``, or its hostname when it has none"""
    if not url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="url param required"
        )
    return {"title": fetch_title(url)}
