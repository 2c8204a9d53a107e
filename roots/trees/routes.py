from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from roots.auth.deps import CurrentUser, get_current_user, get_db
from roots.auth.permissions import Permission, ensure_owner_or_permission, require_permission
from roots.schemas.common import IdOut, MessageOut
from roots.schemas.tree import PeopleOut, TreeAdminOut, TreeMyOut, TreePublicOut
from roots.storage.files import FileStore, get_file_store
from roots.trees.service import (
    create_tree, delete_tree, gedcom_file, get_tree_or_404, list_people, list_trees,
    member_counts, to_admin, to_mine, to_public, update_tree,
)
from roots.utils.forms import Payload, parse_id, read_payload

public_router = APIRouter(prefix="/trees", tags=["trees"])
my_router = APIRouter(prefix="/my/trees", tags=["trees"])
admin_router = APIRouter(prefix="/admin/trees", tags=["admin"])

require_manage_trees = require_permission(Permission.MANAGE_ALL_TREES)


def _gedcom_response(path) -> FileResponse:
    return FileResponse(path, media_type="text/plain", filename=path.name)

def _load_public(db: Session, tree_id: str):
    tree = get_tree_or_404(db, parse_id(tree_id, "tree"))
    if not tree.is_public:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return tree

def _load_owned(db: Session, tree_id: str, user: CurrentUser):
    tree = get_tree_or_404(db, parse_id(tree_id, "tree"))
    ensure_owner_or_permission(user, tree.user_id, Permission.MANAGE_ALL_TREES)
    return tree

def _count(db: Session, tree) -> int:
    return member_counts(db, [tree.id]).get(tree.id, 0)


# ----- Public -----
@public_router.get("", response_model=list[TreePublicOut])
def list_public_trees(response: Response, db: Session = Depends(get_db)):
    response.headers["Cache-Control"] = "no-store"
    return [to_public(t) for t in list_trees(db, public_only=True)]

@public_router.get("/{tree_id}", response_model=TreePublicOut)
def get_public_tree(tree_id: str, db: Session = Depends(get_db)):
    return to_public(_load_public(db, tree_id))

@public_router.get("/{tree_id}/gedcom")
def download_public_gedcom(tree_id: str, db: Session = Depends(get_db),
                           store: FileStore = Depends(get_file_store)):
    return _gedcom_response(gedcom_file(store, _load_public(db, tree_id)))

@public_router.get("/{tree_id}/people", response_model=PeopleOut)
def list_public_tree_people(tree_id: str, db: Session = Depends(get_db)):
    tree = _load_public(db, tree_id)
    return PeopleOut(people=list_people(db, tree.id))


# ----- Mine -----
@my_router.get("", response_model=list[TreeMyOut])
def list_my_trees(response: Response, db: Session = Depends(get_db),
                  user: CurrentUser = Depends(get_current_user)):
    response.headers["Cache-Control"] = "no-store"
    trees = list_trees(db, owner_id=user.id)
    counts = member_counts(db, [t.id for t in trees])
    return [to_mine(t, counts.get(t.id, 0)) for t in trees]

@my_router.get("/{tree_id}", response_model=TreeMyOut)
def get_my_tree(tree_id: str, db: Session = Depends(get_db),
                user: CurrentUser = Depends(get_current_user)):
    tree = _load_owned(db, tree_id, user)
    return to_mine(tree, _count(db, tree))

@my_router.post("", response_model=IdOut, status_code=status.HTTP_201_CREATED)
def create_my_tree(payload: Payload = Depends(read_payload), db: Session = Depends(get_db),
                   store: FileStore = Depends(get_file_store),
                   user: CurrentUser = Depends(get_current_user)):
    tree = create_tree(db, store, user, payload)
    return IdOut(id=tree.id)

@my_router.put("/{tree_id}", response_model=IdOut)
def update_my_tree(tree_id: str, payload: Payload = Depends(read_payload),
                   db: Session = Depends(get_db), store: FileStore = Depends(get_file_store),
                   user: CurrentUser = Depends(get_current_user)):
    tree = update_tree(db, store, user, _load_owned(db, tree_id, user), payload)
    return IdOut(id=tree.id)

@my_router.delete("/{tree_id}", response_model=MessageOut)
def delete_my_tree(tree_id: str, db: Session = Depends(get_db),
                   store: FileStore = Depends(get_file_store),
                   user: CurrentUser = Depends(get_current_user)):
    delete_tree(db, store, user, _load_owned(db, tree_id, user))
    return MessageOut(message="Deleted")

@my_router.get("/{tree_id}/gedcom")
def download_my_gedcom(tree_id: str, db: Session = Depends(get_db),
                       store: FileStore = Depends(get_file_store),
                       user: CurrentUser = Depends(get_current_user)):
    return _gedcom_response(gedcom_file(store, _load_owned(db, tree_id, user)))

@my_router.get("/{tree_id}/people", response_model=PeopleOut)
def list_my_tree_people(tree_id: str, db: Session = Depends(get_db),
                        user: CurrentUser = Depends(get_current_user)):
    tree = _load_owned(db, tree_id, user)
    return PeopleOut(people=list_people(db, tree.id))


# ----- Admin -----
@admin_router.get("", response_model=list[TreeAdminOut])
def list_admin_trees(response: Response, db: Session = Depends(get_db),
                     user: CurrentUser = Depends(require_manage_trees)):
    response.headers["Cache-Control"] = "no-store"
    trees = list_trees(db)
    counts = member_counts(db, [t.id for t in trees])
    return [to_admin(t, counts.get(t.id, 0)) for t in trees]

@admin_router.get("/{tree_id}", response_model=TreeAdminOut)
def get_admin_tree(tree_id: str, db: Session = Depends(get_db),
                   user: CurrentUser = Depends(require_manage_trees)):
    tree = get_tree_or_404(db, parse_id(tree_id, "tree"))
    return to_admin(tree, _count(db, tree))

@admin_router.post("", response_model=IdOut, status_code=status.HTTP_201_CREATED)
def create_admin_tree(payload: Payload = Depends(read_payload), db: Session = Depends(get_db),
                      store: FileStore = Depends(get_file_store),
                      user: CurrentUser = Depends(require_manage_trees)):
    tree = create_tree(db, store, user, payload)
    return IdOut(id=tree.id)

@admin_router.put("/{tree_id}", response_model=IdOut)
def update_admin_tree(tree_id: str, payload: Payload = Depends(read_payload),
                      db: Session = Depends(get_db), store: FileStore = Depends(get_file_store),
                      user: CurrentUser = Depends(require_manage_trees)):
    tree = get_tree_or_404(db, parse_id(tree_id, "tree"))
    tree = update_tree(db, store, user, tree, payload)
    return IdOut(id=tree.id)

@admin_router.delete("/{tree_id}", response_model=MessageOut)
def delete_admin_tree(tree_id: str, db: Session = Depends(get_db),
                      store: FileStore = Depends(get_file_store),
                      user: CurrentUser = Depends(require_manage_trees)):
    delete_tree(db, store, user, get_tree_or_404(db, parse_id(tree_id, "tree")))
    return MessageOut(message="Deleted")

@admin_router.get("/{tree_id}/gedcom")
def download_admin_gedcom(tree_id: str, db: Session = Depends(get_db),
                          store: FileStore = Depends(get_file_store),
                          user: CurrentUser = Depends(require_manage_trees)):
    tree = get_tree_or_404(db, parse_id(tree_id, "tree"))
    return _gedcom_response(gedcom_file(store, tree))
