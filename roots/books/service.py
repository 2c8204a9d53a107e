import logging
from pathlib import Path

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload

from roots.activity.service import log_activity
from roots.config import settings
from roots.models.book import Book
from roots.schemas.book import BookAdminOut, BookMyOut, BookPublicOut
from roots.storage.files import FileStore, Visibility, public_url
from roots.utils.forms import Payload, ensure_max_lengths

logger = logging.getLogger(__name__)

KIND = "books"
SECTION = "books"

TEXT_FIELDS = (
    ("author", "author"),
    ("description", "description"),
    ("category", "category"),
    ("archive_source", "archiveSource"),
    ("document_code", "documentCode"),
)


def _max_bytes() -> int:
    return settings.max_book_upload_mb * 1024 * 1024


def _common_fields(b: Book) -> dict:
    return dict(
        id=b.id,
        title=b.title,
        author=b.author,
        description=b.description,
        category=b.category,
        archive_source=b.archive_source or "",
        document_code=b.document_code or "",
        cover_url=b.cover_path or None,
        file_size=b.file_size,
        downloads=b.download_count or 0,
        created_at=b.created_at,
    )


def to_public(b: Book) -> BookPublicOut:
    return BookPublicOut(file_url=b.file_path, **_common_fields(b))


def to_mine(b: Book) -> BookMyOut:
    return BookMyOut(file_url=public_url(b.file_path), is_public=bool(b.is_public), **_common_fields(b))


def to_admin(b: Book) -> BookAdminOut:
    uploader = b.uploader.full_name if b.uploader else None
    return BookAdminOut(
        file_url=public_url(b.file_path),
        is_public=bool(b.is_public),
        uploaded_by=uploader or "Unknown",
        **_common_fields(b),
    )


def list_books(db: Session, *, public_only: bool = False, owner_id: int | None = None) -> list[Book]:
    stmt = select(Book).options(joinedload(Book.uploader)).order_by(Book.created_at.desc(), Book.id.desc())
    if public_only:
        stmt = stmt.where(Book.is_public.is_(True))
    if owner_id is not None:
        stmt = stmt.where(Book.uploaded_by == owner_id)
    return list(db.scalars(stmt).unique())


def get_book_or_404(db: Session, book_id: int) -> Book:
    book = db.get(Book, book_id)
    if book is None:
        raise HTTPException(status_code=404, detail="Not found")
    return book


def _text_fields(payload: Payload, book: Book | None = None) -> dict:
    """Text columns from the body; on update absent keys keep ``book``'s values."""
    values = {}
    for attr, key in TEXT_FIELDS:
        if book is None:
            values[attr] = payload.text(key)
        else:
            values[attr] = payload.pick(key, getattr(book, attr))
    return values


def create_book(db: Session, store: FileStore, user, payload: Payload) -> Book:
    title = payload.text("title")
    book_file = payload.file("file")
    cover_file = payload.file("cover")
    if not title or not book_file:
        raise HTTPException(status_code=400, detail="Title and file are required")

    is_public = payload.flag("isPublic", True)
    if is_public and not cover_file:
        raise HTTPException(status_code=400, detail="Cover image is required")
    fields = _text_fields(payload)
    ensure_max_lengths(Book, {"title": title, **fields})

    saved = []
    try:
        stored, size = store.save(book_file.file, book_file.filename, KIND,
                                  Visibility.from_flag(is_public), _max_bytes())
        saved.append(stored.serialize())
        cover_path = None
        if cover_file:
            cover, _ = store.save(cover_file.file, cover_file.filename, KIND, Visibility.PUBLIC, _max_bytes())
            cover_path = cover.serialize()
            saved.append(cover_path)

        book = Book(
            title=title,
            file_path=stored.serialize(),
            cover_path=cover_path,
            file_size=size,
            download_count=0,
            uploaded_by=user.id,
            is_public=is_public,
            **fields,
        )
        db.add(book)
        db.commit()
    except Exception:
        db.rollback()
        for value in saved:
            store.delete_stored(value)
        raise
    db.refresh(book)

    log_activity(db, user.id, SECTION, f"Uploaded book: {title}")
    return book


def update_book(db: Session, store: FileStore, user, book: Book, payload: Payload) -> Book:
    """Apply a partial update.

    New uploads are written first and the row is committed before the files
    they replace are removed. On failure the new uploads are discarded and a
    relocated file is moved back, so the stored paths always exist on disk.
    """
    title = payload.text("title") if payload.has("title") else book.title
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    fields = _text_fields(payload, book)
    ensure_max_lengths(Book, {"title": title, **fields})

    is_public = payload.flag("isPublic", bool(book.is_public))
    book_file = payload.file("file")
    cover_file = payload.file("cover")
    old_file, old_cover = book.file_path, book.cover_path

    saved = []
    relocated = old_file
    try:
        if book_file:
            stored, size = store.save(book_file.file, book_file.filename, KIND,
                                      Visibility.from_flag(is_public), _max_bytes())
            saved.append(stored.serialize())
            book.file_path = stored.serialize()
            book.file_size = size
        if cover_file:
            cover, _ = store.save(cover_file.file, cover_file.filename, KIND, Visibility.PUBLIC, _max_bytes())
            saved.append(cover.serialize())
            book.cover_path = cover.serialize()
        if not book_file:
            relocated = store.relocate(old_file, is_public)
            book.file_path = relocated

        book.title = title
        for attr, value in fields.items():
            setattr(book, attr, value)
        book.is_public = is_public
        db.commit()
    except Exception:
        db.rollback()
        for value in saved:
            store.delete_stored(value)
        if relocated != old_file:
            store.relocate(relocated, not is_public)
        raise

    if book_file:
        store.delete_stored(old_file)
    if cover_file:
        store.delete_stored(old_cover)
    db.refresh(book)

    log_activity(db, user.id, SECTION, f"Updated book: {title}")
    return book


def delete_book(db: Session, store: FileStore, user, book: Book) -> None:
    title, file_path, cover_path, book_id = book.title, book.file_path, book.cover_path, book.id
    db.delete(book)
    db.commit()
    store.delete_stored(file_path)
    store.delete_stored(cover_path)

    log_activity(db, user.id, SECTION, f"Deleted book: {title or book_id}")


def record_download(db: Session, store: FileStore, book: Book) -> Path:
    """Resolve the book file and count the download. 404 when the file is
    missing on disk even though the row exists."""
    path = store.resolve_stored_path(book.file_path)
    if path is None or not path.is_file():
        logger.warning("Book %s references missing file %s", book.id, book.file_path)
        raise HTTPException(status_code=404, detail="File not found")

    db.execute(
        update(Book)
        .where(Book.id == book.id)
        .values(download_count=Book.download_count + 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return path
