import os

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from roots.activity.service import log_activity
from roots.config import settings
from roots.models.gallery import GalleryItem
from roots.schemas.gallery import GalleryItemOut, UploaderOut
from roots.storage.files import FileStore, Visibility
from roots.utils.forms import Payload, ensure_max_lengths

KIND = "gallery"
SECTION = "gallery"

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}

TEXT_FIELDS = (
    ("description", "description"),
    ("archive_source", "archiveSource"),
    ("document_code", "documentCode"),
    ("location", "location"),
    ("year", "year"),
    ("photographer", "photographer"),
)


def to_out(item: GalleryItem, include_uploader: bool = False, include_email: bool = False) -> GalleryItemOut:
    uploader = None
    if include_uploader and item.uploader is not None:
        uploader = UploaderOut(
            id=item.uploader.id,
            full_name=item.uploader.full_name,
            email=item.uploader.email if include_email else None,
        )
    return GalleryItemOut(
        id=item.id,
        title=item.title,
        description=item.description,
        image_path=item.image_path,
        is_public=bool(item.is_public),
        archive_source=item.archive_source,
        document_code=item.document_code,
        location=item.location,
        year=item.year,
        photographer=item.photographer,
        uploaded_by=item.uploaded_by,
        uploader=uploader,
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


def list_items(db: Session, *, public_only: bool = False, owner_id: int | None = None) -> list[GalleryItem]:
    stmt = (
        select(GalleryItem)
        .options(joinedload(GalleryItem.uploader))
        .order_by(GalleryItem.created_at.desc(), GalleryItem.id.desc())
    )
    if public_only:
        stmt = stmt.where(GalleryItem.is_public.is_(True))
    if owner_id is not None:
        stmt = stmt.where(GalleryItem.uploaded_by == owner_id)
    return list(db.scalars(stmt).unique())


def get_item_or_404(db: Session, item_id: int) -> GalleryItem:
    item = db.get(GalleryItem, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Gallery item not found")
    return item


def _save_image(store: FileStore, upload) -> str:
    ext = os.path.splitext(upload.filename or "")[1].lower()
    content_type = (upload.content_type or "").lower()
    if ext not in ALLOWED_EXTENSIONS or content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Only image files are allowed")
    stored, _ = store.save(upload.file, upload.filename, KIND, Visibility.PUBLIC,
                           settings.max_image_upload_mb * 1024 * 1024)
    return stored.serialize()


def create_item(db: Session, store: FileStore, user, payload: Payload) -> GalleryItem:
    image = payload.file("image")
    if not image:
        raise HTTPException(status_code=400, detail="Image file is required")
    title = payload.text("title")
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    fields = {attr: payload.text(key) for attr, key in TEXT_FIELDS}
    ensure_max_lengths(GalleryItem, {"title": title, **fields})

    image_path = _save_image(store, image)
    item = GalleryItem(
        title=title,
        image_path=image_path,
        uploaded_by=user.id,
        is_public=payload.flag("isPublic", True),
        **fields,
    )
    try:
        db.add(item)
        db.commit()
    except Exception:
        db.rollback()
        store.delete_stored(image_path)
        raise
    db.refresh(item)

    log_activity(db, user.id, SECTION, f"Uploaded gallery item: {title}")
    return item


def update_item(db: Session, store: FileStore, user, item: GalleryItem, payload: Payload) -> GalleryItem:
    title = payload.text("title") if payload.has("title") else item.title
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    fields = {attr: payload.pick(key, getattr(item, attr)) for attr, key in TEXT_FIELDS}
    ensure_max_lengths(GalleryItem, {"title": title, **fields})

    image = payload.file("image")
    old_image = item.image_path
    new_image = _save_image(store, image) if image else None
    try:
        if new_image:
            item.image_path = new_image
        item.title = title
        item.is_public = payload.flag("isPublic", bool(item.is_public))
        for attr, value in fields.items():
            setattr(item, attr, value)
        db.commit()
    except Exception:
        db.rollback()
        store.delete_stored(new_image)
        raise

    if new_image:
        store.delete_stored(old_image)
    db.refresh(item)

    log_activity(db, user.id, SECTION, f"Updated gallery item: {title}")
    return item


def delete_item(db: Session, store: FileStore, user, item: GalleryItem) -> None:
    title, image_path, item_id = item.title, item.image_path, item.id
    db.delete(item)
    db.commit()
    store.delete_stored(image_path)

    log_activity(db, user.id, SECTION, f"Deleted gallery item: {title or item_id}")
