import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..models.blog import Blog
from ..models.comment import BlogComment
from ..schemas.comment import CommentSubmit

logger = logging.getLogger(__name__)


def get_blog_or_404(db: Session, blog_id: int) -> Blog:
    blog = db.get(Blog, blog_id)
    if blog is None:
        raise NotFound("Blog not found")
    return blog


def create_comment(
    db: Session,
    payload: CommentSubmit,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> BlogComment:
    """Store a verified comment. It waits in ``pending`` until moderated."""
    get_blog_or_404(db, payload.blog_id)
    comment = BlogComment(
        blog_id=payload.blog_id,
        name=payload.name,
        email=str(payload.email).lower(),
        mobile=payload.mobile,
        country_code=payload.country_code,
        comment=payload.comment,
        hear_about=payload.hear_about,
        status="pending",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    logger.info("Comment %d on blog %d awaiting moderation", comment.id, comment.blog_id)
    return comment
