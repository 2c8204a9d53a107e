from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from roots.auth.deps import CurrentUser, get_current_user, get_db
from roots.auth.permissions import Permission, ensure_owner_or_permission, require_permission
from roots.gallery.service import (
    create_item, delete_item, get_item_or_404, list_items, to_out, update_item,
)
from roots.schemas.common import MessageOut
from roots.schemas.gallery import GalleryItemEnvelope, GalleryListOut, GalleryMutationOut
from roots.storage.files import FileStore, get_file_store
from roots.utils.forms import Payload, parse_id, read_payload

public_router = APIRouter(prefix="/gallery", tags=["gallery"])
my_router = APIRouter(prefix="/my/gallery", tags=["gallery"])
admin_router = APIRouter(prefix="/admin/gallery", tags=["admin"])

require_manage_gallery = require_permission(Permission.MANAGE_GALLERY)


# ----- Public -----
@public_router.get("", response_model=GalleryListOut)
def list_public_gallery(response: Response, db: Session = Depends(get_db)):
    response.headers["Cache-Control"] = "no-store"
    return GalleryListOut(gallery=[to_out(i, include_uploader=True) for i in list_items(db, public_only=True)])

@public_router.get("/{item_id}", response_model=GalleryItemEnvelope)
def get_public_gallery_item(item_id: str, db: Session = Depends(get_db)):
    item = get_item_or_404(db, parse_id(item_id, "gallery"))
    if not item.is_public:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return GalleryItemEnvelope(item=to_out(item, include_uploader=True))


# ----- Mine -----
@my_router.get("", response_model=GalleryListOut)
def list_my_gallery(response: Response, db: Session = Depends(get_db),
                    user: CurrentUser = Depends(get_current_user)):
    response.headers["Cache-Control"] = "no-store"
    return GalleryListOut(gallery=[to_out(i) for i in list_items(db, owner_id=user.id)])

@my_router.get("/{item_id}", response_model=GalleryItemEnvelope)
def get_my_gallery_item(item_id: str, db: Session = Depends(get_db),
                        user: CurrentUser = Depends(get_current_user)):
    item = get_item_or_404(db, parse_id(item_id, "gallery"))
    ensure_owner_or_permission(user, item.uploaded_by, Permission.MANAGE_GALLERY)
    return GalleryItemEnvelope(item=to_out(item))

@my_router.post("", response_model=GalleryMutationOut, status_code=status.HTTP_201_CREATED)
def create_my_gallery_item(payload: Payload = Depends(read_payload), db: Session = Depends(get_db),
                           store: FileStore = Depends(get_file_store),
                           user: CurrentUser = Depends(get_current_user)):
    item = create_item(db, store, user, payload)
    return GalleryMutationOut(message="Gallery item uploaded successfully", id=item.id, item=to_out(item))

@my_router.put("/{item_id}", response_model=GalleryMutationOut)
def update_my_gallery_item(item_id: str, payload: Payload = Depends(read_payload),
                           db: Session = Depends(get_db), store: FileStore = Depends(get_file_store),
                           user: CurrentUser = Depends(get_current_user)):
    item = get_item_or_404(db, parse_id(item_id, "gallery"))
    ensure_owner_or_permission(user, item.uploaded_by, Permission.MANAGE_GALLERY)
    item = update_item(db, store, user, item, payload)
    return GalleryMutationOut(message="Gallery item updated successfully", id=item.id, item=to_out(item))

@my_router.delete("/{item_id}", response_model=MessageOut)
def delete_my_gallery_item(item_id: str, db: Session = Depends(get_db),
                           store: FileStore = Depends(get_file_store),
                           user: CurrentUser = Depends(get_current_user)):
    item = get_item_or_404(db, parse_id(item_id, "gallery"))
    ensure_owner_or_permission(user, item.uploaded_by, Permission.MANAGE_GALLERY)
    delete_item(db, store, user, item)
    return MessageOut(message="Gallery item deleted successfully")


# ----- Admin -----
@admin_router.get("", response_model=GalleryListOut)
def list_admin_gallery(response: Response, db: Session = Depends(get_db),
                       user: CurrentUser = Depends(require_manage_gallery)):
    response.headers["Cache-Control"] = "no-store"
    items = list_items(db)
    return GalleryListOut(gallery=[to_out(i, include_uploader=True, include_email=True) for i in items])

@admin_router.get("/{item_id}", response_model=GalleryItemEnvelope)
def get_admin_gallery_item(item_id: str, db: Session = Depends(get_db),
                           user: CurrentUser = Depends(require_manage_gallery)):
    item = get_item_or_404(db, parse_id(item_id, "gallery"))
    return GalleryItemEnvelope(item=to_out(item, include_uploader=True, include_email=True))

@admin_router.post("", response_model=GalleryMutationOut, status_code=status.HTTP_201_CREATED)
def create_admin_gallery_item(payload: Payload = Depends(read_payload), db: Session = Depends(get_db),
                              store: FileStore = Depends(get_file_store),
                              user: CurrentUser = Depends(require_manage_gallery)):
    item = create_item(db, store, user, payload)
    return GalleryMutationOut(message="Gallery item created successfully", id=item.id, item=to_out(item))

@admin_router.put("/{item_id}", response_model=GalleryMutationOut)
def update_admin_gallery_item(item_id: str, payload: Payload = Depends(read_payload),
                              db: Session = Depends(get_db), store: FileStore = Depends(get_file_store),
                              user: CurrentUser = Depends(require_manage_gallery)):
    item = get_item_or_404(db, parse_id(item_id, "gallery"))
    item = update_item(db, store, user, item, payload)
    return GalleryMutationOut(message="Gallery item updated successfully", id=item.id, item=to_out(item))

@admin_router.delete("/{item_id}", response_model=MessageOut)
def delete_admin_gallery_item(item_id: str, db: Session = Depends(get_db),
                              store: FileStore = Depends(get_file_store),
                              user: CurrentUser = Depends(require_manage_gallery)):
    item = get_item_or_404(db, parse_id(item_id, "gallery"))
    delete_item(db, store, user, item)
    return MessageOut(message="Gallery item deleted successfully")
