# solarcrm/routers/posts.py
import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy import update
from sqlmodel import Session, select

from solarcrm.db import get_session
from solarcrm.deps import Principal, require_admin
from solarcrm.models import Post
from solarcrm.serializers import post_to_dict
from solarcrm.storage import remove_file, store_file, unique_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["posts"])


def _all_posts(session: Session):
    rows = session.exec(select(Post).order_by(Post.created_at.desc())).all()
    return [post_to_dict(p) for p in rows]


@router.get("/posts")
def list_posts(session: Session = Depends(get_session)):
    return _all_posts(session)


@router.get("/admin/posts")
def admin_list_posts(
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    return _all_posts(session)


@router.post("/admin/posts", status_code=status.HTTP_201_CREATED)
def create_post(
    caption: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    if not caption or not caption.strip():
        raise HTTPException(status_code=400, detail="caption is required")
    if image is None or not image.filename:
        raise HTTPException(status_code=400, detail="image file is required")

    ext = Path(image.filename).suffix or ".jpg"
    data = image.file.read()
    image_url = store_file(
        "posts", unique_filename(ext), data, image.content_type or "application/octet-stream"
    )

    post = Post(caption=caption.strip(), image_url=image_url, author_id=admin.sub)
    session.add(post)
    session.commit()
    session.refresh(post)
    logger.info("[posts] admin=%s created post=%s", admin.sub, post.id)
    return post_to_dict(post)


@router.delete("/admin/posts/{post_id}")
def delete_post(
    post_id: str,
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    post = session.get(Post, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    if post.image_url and not remove_file(post.image_url):
        logger.warning("[posts] image for post=%s was not removed (%s)", post_id, post.image_url)
    session.delete(post)
    session.commit()
    return {"ok": True}


@router.post("/posts/{post_id}/like")
def like_post(post_id: str, session: Session = Depends(get_session)):
    # single UPDATE so concurrent likes cannot overwrite each other
    result = session.exec(
        update(Post).where(Post.id == post_id).values(likes=Post.likes + 1)
    )
    session.commit()
    if not result.rowcount:
        raise HTTPException(status_code=400, detail="Failed to like post")
    post = session.get(Post, post_id)
    return post_to_dict(post)
