from urllib.parse import urlencode
from fastapi import APIRouter, Form, status
from fastapi.responses import RedirectResponse
from marginalia.core.utils import extract_url_from_text

router = APIRouter()


@router.post("/share", summary="Web share target")
def share_target(
    title: str = Form(default=""),
    text: str = Form(default=""),
    url: str = Form(default=""),
):
    """Receive a shared link and hand it to the share page"""
    shared_url = url or extract_url_from_text(text)
    params = {}
    if shared_url:
        params["url"] = shared_url
    if title:
        params["title"] = title

    target = "/share"
    if params:
        target = f"{target}?{urlencode(params)}"
    return RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)
