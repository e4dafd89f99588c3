from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session, joinedload

from ..core.database import get_db
from ..core.email import Mailer
from ..core.errors import NotFound
from ..core.pagination import PageParams, page_params, paginate
from ..dependencies import admin_required, client_ip, get_mailer
from ..models.comment import BlogComment
from ..models.otp import CodePurpose
from ..models.user import User
from ..schemas.comment import CommentSubmit, CommentVerify, ModerateRequest, CommentOut, PublicCommentOut
from ..schemas.common import ok, dump, dump_all, parse_payload
from ..services.comments import create_comment, get_blog_or_404
from ..services.verification import issue_code, redeem_code, pending_payload

router = APIRouter(prefix="/comments", tags=["comments"])


def _get_comment(db: Session, comment_id: int) -> BlogComment:
    comment = db.get(BlogComment, comment_id)
    if not comment:
        raise NotFound("Comment not found")
    return comment


@router.post("/submit")
async def submit_comment(
    payload: CommentSubmit,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    get_blog_or_404(db, payload.blog_id)
    handle = await issue_code(db, mailer, payload.email, CodePurpose.COMMENT, payload.model_dump(mode="json"))
    return ok(
        {
            "email": handle.email,
            "requiresOTP": True,
            "verificationId": handle.verification_id,
            "expiresAt": handle.expires_at.isoformat(),
        },
        "OTP sent to your email. Please verify to submit comment.",
    )


@router.post("/verify", status_code=201)
def verify_comment(payload: CommentVerify, request: Request, db: Session = Depends(get_db)):
    checked: dict[str, CommentSubmit] = {}

    def check_submission(record):
        # the comment captured at submit time wins over anything resent now
        data = pending_payload(record)
        if data is None:
            data = payload.model_dump(exclude={"otp", "verification_id"}, exclude_none=True)
        data["email"] = record.email
        submission = parse_payload(CommentSubmit, data)
        get_blog_or_404(db, submission.blog_id)
        checked["submission"] = submission

    redeem_code(
        db,
        payload.email,
        CodePurpose.COMMENT,
        payload.otp,
        payload.verification_id,
        before_consume=check_submission,
    )
    comment = create_comment(
        db,
        checked["submission"],
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return ok(dump(PublicCommentOut, comment), "Comment submitted successfully and is pending approval")


@router.get("/blog/{blog_id}")
def comments_for_blog(blog_id: int, status: str = "approved", db: Session = Depends(get_db)):
    comments = (
        db.query(BlogComment)
        .filter(BlogComment.blog_id == blog_id, BlogComment.status == status)
        .order_by(BlogComment.created_at.desc(), BlogComment.id.desc())
        .all()
    )
    return ok(dump_all(PublicCommentOut, comments))


@router.get("")
def list_comments(
    status: Optional[str] = None,
    params: PageParams = Depends(page_params(default_limit=20)),
    db: Session = Depends(get_db),
    _: User = Depends(admin_required),
):
    query = db.query(BlogComment).options(joinedload(BlogComment.blog))
    if status and status != "all":
        query = query.filter(BlogComment.status == status)
    comments, pagination = paginate(query.order_by(BlogComment.created_at.desc(), BlogComment.id.desc()), params)
    return ok(dump_all(CommentOut, comments), pagination=pagination)


@router.put("/{comment_id}/moderate")
def moderate_comment(
    comment_id: int,
    payload: ModerateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(admin_required),
):
    comment = _get_comment(db, comment_id)
    comment.status = payload.status
    db.commit()
    db.refresh(comment)
    return ok(dump(CommentOut, comment), f"Comment {payload.status} successfully")


@router.delete("/{comment_id}")
def delete_comment(comment_id: int, db: Session = Depends(get_db), _: User = Depends(admin_required)):
    comment = _get_comment(db, comment_id)
    db.delete(comment)
    db.commit()
    return ok(message="Comment deleted successfully")
