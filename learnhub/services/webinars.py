import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.core.auth import AuthContext
from learnhub.core.errors import NotFound, ValidationError
from learnhub.core.storage import BlobStorage
from learnhub.models.base import utcnow
from learnhub.models.orm import User, Webinar, WebinarInstructor
from learnhub.services import cascade
from learnhub.services.files import ensure_live_files, url_for
from learnhub.services.pagination import paginate
from learnhub.services.slug import commit_with_unique_slug, insert_with_unique_slug

logger = logging.getLogger(__name__)

WEBINAR_FIELDS = ("title", "description", "is_free", "price", "thumbnail_file_id", "live_link", "scheduled_at", "duration", "status")
REQUIRED_FIELDS = ("title", "is_free", "scheduled_at", "duration", "status")


def _instructors(db: Session, webinar_id: UUID) -> list[dict]:
    rows = db.execute(
        select(WebinarInstructor.instructor_id, User.name, User.email)
        .outerjoin(User, User.id == WebinarInstructor.instructor_id)
        .where(WebinarInstructor.webinar_id == webinar_id, WebinarInstructor.live())
    ).all()
    return [{"id": iid, "name": name, "email": email} for iid, name, email in rows]

def webinar_view(db: Session, storage: BlobStorage, w: Webinar) -> dict:
    return {
        "id": w.id,
        "title": w.title,
        "slug": w.slug,
        "description": w.description,
        "isFree": w.is_free,
        "price": w.price,
        "thumbnailFileId": w.thumbnail_file_id,
        "thumbnailUrl": url_for(db, storage, w.thumbnail_file_id),
        "liveLink": w.live_link,
        "scheduledAt": w.scheduled_at,
        "duration": w.duration,
        "status": w.status,
        "createdAt": w.created_at,
        "updatedAt": w.updated_at,
    }

def _get_live(db: Session, webinar_id: UUID) -> Webinar:
    webinar = db.scalar(select(Webinar).where(Webinar.id == webinar_id, Webinar.live()))
    if not webinar:
        raise NotFound("Webinar not found")
    return webinar

def _set_instructors(db: Session, webinar_id: UUID, instructor_ids: Sequence[UUID]) -> None:
    now = utcnow()
    for link in db.scalars(select(WebinarInstructor).where(WebinarInstructor.webinar_id == webinar_id, WebinarInstructor.live())):
        link.soft_delete(now)
    db.add_all(WebinarInstructor(webinar_id=webinar_id, instructor_id=i) for i in dict.fromkeys(instructor_ids))


def create_webinar(db: Session, storage: BlobStorage, auth: AuthContext, *, title: str, scheduled_at: datetime,
                   duration: int, instructor_ids: Sequence[UUID], description: str | None = None,
                   is_free: bool = False, price: Decimal | None = None, thumbnail_file_id: UUID | None = None,
                   live_link: str | None = None, status: str = "upcoming") -> dict:
    if not is_free and not price:
        raise ValidationError("Price is required if isFree is false")
    if thumbnail_file_id:
        ensure_live_files(db, [thumbnail_file_id])

    def build(slug: str) -> Webinar:
        webinar = Webinar(
            id=uuid.uuid4(), title=title, slug=slug, description=description, is_free=is_free,
            price=None if is_free else price, thumbnail_file_id=thumbnail_file_id, live_link=live_link,
            scheduled_at=scheduled_at, duration=duration, status=status,
        )
        db.add_all(WebinarInstructor(webinar_id=webinar.id, instructor_id=i) for i in dict.fromkeys(instructor_ids))
        return webinar

    webinar = insert_with_unique_slug(
        db, title,
        lambda base: db.scalars(select(Webinar.slug).where(Webinar.slug.like(f"{base}%"))),
        build,
        label="webinar slug",
    )
    logger.info("Webinar %s (%s) created by %s", webinar.id, webinar.slug, auth.user_id)
    return {**webinar_view(db, storage, webinar), "instructors": _instructors(db, webinar.id)}

def update_webinar(db: Session, storage: BlobStorage, auth: AuthContext, webinar_id: UUID, patch: Mapping[str, Any]) -> dict:
    webinar = _get_live(db, webinar_id)
    for field in REQUIRED_FIELDS:
        if field in patch and patch[field] is None:
            raise ValidationError(f"{field} cannot be null")
    if patch.get("thumbnail_file_id"):
        ensure_live_files(db, [patch["thumbnail_file_id"]])

    def apply(slug: str | None = None) -> Webinar:
        for field in WEBINAR_FIELDS:
            if field in patch:
                setattr(webinar, field, patch[field])
        if not webinar.is_free and not webinar.price:
            raise ValidationError("Price is required if isFree is false")
        if webinar.is_free:
            webinar.price = None
        if slug:
            webinar.slug = slug
        if patch.get("instructor_ids"):
            _set_instructors(db, webinar.id, patch["instructor_ids"])
        webinar.updated_at = utcnow()
        return webinar

    if patch.get("title"):
        commit_with_unique_slug(
            db, patch["title"],
            lambda base: db.scalars(select(Webinar.slug).where(Webinar.slug.like(f"{base}%"), Webinar.id != webinar_id)),
            apply,
            label="webinar slug",
        )
    else:
        apply()
        db.commit()
    return {**webinar_view(db, storage, webinar), "instructors": _instructors(db, webinar.id)}

def get_webinar(db: Session, storage: BlobStorage, webinar_id: UUID) -> dict:
    webinar = _get_live(db, webinar_id)
    return {**webinar_view(db, storage, webinar), "instructors": _instructors(db, webinar.id)}

def list_webinars(db: Session, storage: BlobStorage, *, page: int = 1, limit: int = 10, status: str | None = None,
                  search: str | None = None) -> dict:
    stmt = select(Webinar).where(Webinar.live())
    if status:
        stmt = stmt.where(Webinar.status == status)
    if search:
        stmt = stmt.where(Webinar.title.ilike(f"%{search}%"))
    rows, meta = paginate(db, stmt.order_by(Webinar.scheduled_at), page, limit)
    return {"webinars": [webinar_view(db, storage, w) for w in rows], "pagination": meta}

def delete_webinar(db: Session, storage: BlobStorage, auth: AuthContext, webinar_id: UUID) -> dict:
    webinar = _get_live(db, webinar_id)
    reclaimed = cascade.delete_webinar(db, storage, webinar)
    logger.info("Webinar %s deleted by %s", webinar_id, auth.user_id)
    return {"id": webinar.id, "deletedAt": webinar.deleted_at, "filesReclaimed": reclaimed}
