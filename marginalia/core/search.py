import re

from sqlalchemy import func, literal_column, or_, select
from sqlalchemy.orm import Session

from marginalia.models.post import Post

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WS_RE = re.compile(r"\s+")


def sanitize_search_term(term: str) -> str:
    """Keep word characters and whitespace only: "neural nets!!" -> "neural nets"."""
    cleaned = _NON_WORD_RE.sub(" ", term.strip())
    return _WS_RE.sub(" ", cleaned).strip()


def matching_post_ids(session: Session, term: str) -> list[str]:
    """Ids of posts matching ``term``, most relevant first.

    PostgreSQL matches against the generated ``search_vector`` column; other
    databases require every word to appear in one of the text columns.
    """
    sanitized = sanitize_search_term(term)
    if not sanitized:
        return []

    if session.get_bind().dialect.name == "postgresql":
        vector = literal_column("posts.search_vector")
        query = func.plainto_tsquery("english", sanitized)
        stmt = (
            select(Post.id)
            .where(vector.op("@@")(query))
            .order_by(func.ts_rank(vector, query).desc())
        )
        return list(session.scalars(stmt))

    columns = (Post.title, Post.content, Post.content_markdown, Post.url, Post.domain)
    stmt = select(Post.id)
    for word in sanitized.split(" "):
        word = word.lower()
        stmt = stmt.where(or_(*(
            func.lower(column).contains(word, autoescape=True) for column in columns
        )))
    return list(session.scalars(stmt.order_by(Post.created_at.desc())))
