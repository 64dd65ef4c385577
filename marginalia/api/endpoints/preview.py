from fastapi import APIRouter
from marginalia.core.security import SessionDep
from marginalia.core.utils import render_markdown
from marginalia.schemas.post import MarkdownPreview

router = APIRouter()


@router.post("/preview", summary="Render Markdown to HTML")
def preview_markdown(preview: MarkdownPreview, current: SessionDep):
    """HTML for a Markdown body, as it would be stored on save"""
    return {"html": render_markdown(preview.markdown) if preview.markdown.strip() else ""}
