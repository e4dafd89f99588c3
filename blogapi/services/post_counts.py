"""Bookkeeping for ``BlogCategory.post_count`` (published blogs per category)."""
import logging
from typing import Optional

from sqlalchemy import update, func
from sqlalchemy.orm import Session

from ..models.blog import Blog, BlogCategory

logger = logging.getLogger(__name__)

PUBLISHED = "published"


def bump(db: Session, category_id: int, delta: int):
    db.execute(
        update(BlogCategory)
        .where(BlogCategory.id == category_id)
        .values(post_count=BlogCategory.post_count + delta)
        .execution_options(synchronize_session=False)
    )


def apply_transition(
    db: Session,
    old_status: Optional[str],
    old_category_id: Optional[int],
    new_status: Optional[str],
    new_category_id: Optional[int],
):
    """Adjust counters for a blog moving from (old_status, old_category) to (new_status, new_category).

    ``None`` for the old side means the blog is being created; ``None`` for
    the new side means it is being deleted.
    """
    was_counted = old_status == PUBLISHED and old_category_id is not None
    is_counted = new_status == PUBLISHED and new_category_id is not None

    if was_counted and is_counted and old_category_id == new_category_id:
        return
    if was_counted:
        bump(db, old_category_id, -1)
    if is_counted:
        bump(db, new_category_id, 1)


def recalculate_post_counts(db: Session) -> dict[str, int]:
    """Recount published blogs for every category and store the result."""
    counts = dict(
        db.query(Blog.category_id, func.count(Blog.id))
        .filter(Blog.status == PUBLISHED)
        .group_by(Blog.category_id)
        .all()
    )
    result = {}
    for category in db.query(BlogCategory).order_by(BlogCategory.position, BlogCategory.name).all():
        category.post_count = counts.get(category.id, 0)
        result[category.slug] = category.post_count
        logger.info("%s (%s): %d published posts", category.name, category.slug, category.post_count)
    db.commit()
    return result


if __name__ == "__main__":
    from ..core.database import SessionLocal, init_db

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    init_db()
    with SessionLocal() as session:
        totals = recalculate_post_counts(session)
    logger.info("Post counts recalculated for %d categories", len(totals))
