from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from roots.auth.deps import CurrentUser, get_current_user, get_db
from roots.auth.permissions import Permission, ensure_owner_or_permission, require_permission
from roots.books.service import (
    create_book, delete_book, get_book_or_404, list_books, record_download,
    to_admin, to_mine, to_public, update_book,
)
from roots.schemas.book import BookAdminOut, BookMyOut, BookPublicOut
from roots.schemas.common import IdOut, MessageOut
from roots.storage.files import FileStore, get_file_store
from roots.utils.forms import Payload, parse_id, read_payload

public_router = APIRouter(prefix="/books", tags=["books"])
my_router = APIRouter(prefix="/my/books", tags=["books"])
admin_router = APIRouter(prefix="/admin/books", tags=["admin"])

require_manage_books = require_permission(Permission.MANAGE_BOOKS)


def _download(path) -> FileResponse:
    return FileResponse(path, filename=path.name)


# ----- Public -----
@public_router.get("", response_model=list[BookPublicOut])
def list_public_books(response: Response, db: Session = Depends(get_db)):
    response.headers["Cache-Control"] = "no-store"
    return [to_public(b) for b in list_books(db, public_only=True)]

@public_router.get("/{book_id}", response_model=BookPublicOut)
def get_public_book(book_id: str, db: Session = Depends(get_db)):
    book = get_book_or_404(db, parse_id(book_id, "book"))
    if not book.is_public:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return to_public(book)

@public_router.get("/{book_id}/download")
def download_public_book(book_id: str, db: Session = Depends(get_db),
                         store: FileStore = Depends(get_file_store)):
    book = get_book_or_404(db, parse_id(book_id, "book"))
    if not book.is_public:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return _download(record_download(db, store, book))


# ----- Mine -----
@my_router.get("", response_model=list[BookMyOut])
def list_my_books(response: Response, db: Session = Depends(get_db),
                  user: CurrentUser = Depends(get_current_user)):
    response.headers["Cache-Control"] = "no-store"
    return [to_mine(b) for b in list_books(db, owner_id=user.id)]

@my_router.get("/{book_id}", response_model=BookMyOut)
def get_my_book(book_id: str, db: Session = Depends(get_db),
                user: CurrentUser = Depends(get_current_user)):
    book = get_book_or_404(db, parse_id(book_id, "book"))
    ensure_owner_or_permission(user, book.uploaded_by, Permission.MANAGE_BOOKS)
    return to_mine(book)

@my_router.post("", response_model=IdOut, status_code=status.HTTP_201_CREATED)
def create_my_book(payload: Payload = Depends(read_payload), db: Session = Depends(get_db),
                   store: FileStore = Depends(get_file_store),
                   user: CurrentUser = Depends(get_current_user)):
    book = create_book(db, store, user, payload)
    return IdOut(id=book.id)

@my_router.put("/{book_id}", response_model=IdOut)
def update_my_book(book_id: str, payload: Payload = Depends(read_payload),
                   db: Session = Depends(get_db), store: FileStore = Depends(get_file_store),
                   user: CurrentUser = Depends(get_current_user)):
    book = get_book_or_404(db, parse_id(book_id, "book"))
    ensure_owner_or_permission(user, book.uploaded_by, Permission.MANAGE_BOOKS)
    book = update_book(db, store, user, book, payload)
    return IdOut(id=book.id)

@my_router.delete("/{book_id}", response_model=MessageOut)
def delete_my_book(book_id: str, db: Session = Depends(get_db),
                   store: FileStore = Depends(get_file_store),
                   user: CurrentUser = Depends(get_current_user)):
    book = get_book_or_404(db, parse_id(book_id, "book"))
    ensure_owner_or_permission(user, book.uploaded_by, Permission.MANAGE_BOOKS)
    delete_book(db, store, user, book)
    return MessageOut(message="Deleted")

@my_router.get("/{book_id}/download")
def download_my_book(book_id: str, db: Session = Depends(get_db),
                     store: FileStore = Depends(get_file_store),
                     user: CurrentUser = Depends(get_current_user)):
    book = get_book_or_404(db, parse_id(book_id, "book"))
    ensure_owner_or_permission(user, book.uploaded_by, Permission.MANAGE_BOOKS)
    return _download(record_download(db, store, book))


# ----- Admin -----
@admin_router.get("", response_model=list[BookAdminOut])
def list_admin_books(response: Response, db: Session = Depends(get_db),
                     user: CurrentUser = Depends(require_manage_books)):
    response.headers["Cache-Control"] = "no-store"
    return [to_admin(b) for b in list_books(db)]

@admin_router.get("/{book_id}", response_model=BookAdminOut)
def get_admin_book(book_id: str, db: Session = Depends(get_db),
                   user: CurrentUser = Depends(require_manage_books)):
    return to_admin(get_book_or_404(db, parse_id(book_id, "book")))

@admin_router.post("", response_model=IdOut, status_code=status.HTTP_201_CREATED)
def create_admin_book(payload: Payload = Depends(read_payload), db: Session = Depends(get_db),
                      store: FileStore = Depends(get_file_store),
                      user: CurrentUser = Depends(require_manage_books)):
    book = create_book(db, store, user, payload)
    return IdOut(id=book.id)

@admin_router.put("/{book_id}", response_model=IdOut)
def update_admin_book(book_id: str, payload: Payload = Depends(read_payload),
                      db: Session = Depends(get_db), store: FileStore = Depends(get_file_store),
                      user: CurrentUser = Depends(require_manage_books)):
    book = get_book_or_404(db, parse_id(book_id, "book"))
    book = update_book(db, store, user, book, payload)
    return IdOut(id=book.id)

@admin_router.delete("/{book_id}", response_model=MessageOut)
def delete_admin_book(book_id: str, db: Session = Depends(get_db),
                      store: FileStore = Depends(get_file_store),
                      user: CurrentUser = Depends(require_manage_books)):
    book = get_book_or_404(db, parse_id(book_id, "book"))
    delete_book(db, store, user, book)
    return MessageOut(message="Deleted")

@admin_router.get("/{book_id}/download")
def download_admin_book(book_id: str, db: Session = Depends(get_db),
                        store: FileStore = Depends(get_file_store),
                        user: CurrentUser = Depends(require_manage_books)):
    book = get_book_or_404(db, parse_id(book_id, "book"))
    return _download(record_download(db, store, book))
