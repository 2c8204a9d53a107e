import logging
from pathlib import Path

from fastapi import HTTPException
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, joinedload

from roots.activity.service import log_activity
from roots.config import settings
from roots.genealogy.ingest import rebuild_tree_people
from roots.models.tree import FamilyTree, Person
from roots.schemas.tree import PersonOut, TreeAdminOut, TreeMyOut, TreeOwnerOut, TreePublicOut
from roots.storage.files import FileStore, Visibility, public_url
from roots.utils.forms import Payload, ensure_max_lengths

logger = logging.getLogger(__name__)

KIND = "trees"
SECTION = "trees"

TEXT_FIELDS = (
    ("description", "description"),
    ("archive_source", "archiveSource"),
    ("document_code", "documentCode"),
)


def _base_fields(t: FamilyTree) -> dict:
    return dict(
        id=t.id,
        title=t.title,
        description=t.description,
        archive_source=t.archive_source or "",
        document_code=t.document_code or "",
        is_public=bool(t.is_public),
        has_gedcom=bool(t.gedcom_path),
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


def to_public(t: FamilyTree) -> TreePublicOut:
    owner = t.owner.full_name if t.owner else None
    return TreePublicOut(owner=owner or "Unknown", gedcom_url=public_url(t.gedcom_path), **_base_fields(t))


def to_mine(t: FamilyTree, members: int) -> TreeMyOut:
    return TreeMyOut(gedcom_url=public_url(t.gedcom_path), members=members, **_base_fields(t))


def to_admin(t: FamilyTree, members: int) -> TreeAdminOut:
    owner = TreeOwnerOut(
        id=t.owner.id if t.owner else None,
        full_name=t.owner.full_name if t.owner else None,
        email=t.owner.email if t.owner else None,
    )
    return TreeAdminOut(members=members, owner=owner, **_base_fields(t))


def member_counts(db: Session, tree_ids: list[int]) -> dict[int, int]:
    if not tree_ids:
        return {}
    rows = db.execute(
        select(Person.tree_id, func.count(Person.id))
        .where(Person.tree_id.in_(tree_ids))
        .group_by(Person.tree_id)
    )
    return {tree_id: count for tree_id, count in rows}


def list_trees(db: Session, *, public_only: bool = False, owner_id: int | None = None) -> list[FamilyTree]:
    stmt = (
        select(FamilyTree)
        .options(joinedload(FamilyTree.owner))
        .order_by(FamilyTree.created_at.desc(), FamilyTree.id.desc())
    )
    if public_only:
        stmt = stmt.where(FamilyTree.is_public.is_(True))
    if owner_id is not None:
        stmt = stmt.where(FamilyTree.user_id == owner_id)
    return list(db.scalars(stmt).unique())


def list_people(db: Session, tree_id: int) -> list[PersonOut]:
    rows = db.scalars(select(Person).where(Person.tree_id == tree_id).order_by(Person.id))
    return [PersonOut(id=p.id, name=p.name) for p in rows]


def get_tree_or_404(db: Session, tree_id: int) -> FamilyTree:
    tree = db.get(FamilyTree, tree_id)
    if tree is None:
        raise HTTPException(status_code=404, detail="Not found")
    return tree


def _text_fields(payload: Payload, tree: FamilyTree | None = None) -> dict:
    values = {}
    for attr, key in TEXT_FIELDS:
        values[attr] = payload.text(key) if tree is None else payload.pick(key, getattr(tree, attr))
    return values


def _save_gedcom(store: FileStore, upload, is_public: bool) -> str:
    stored, _ = store.save(upload.file, upload.filename, KIND, Visibility.from_flag(is_public),
                           settings.max_tree_upload_mb * 1024 * 1024)
    return stored.serialize()


def create_tree(db: Session, store: FileStore, user, payload: Payload) -> FamilyTree:
    title = payload.text("title")
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    fields = _text_fields(payload)
    ensure_max_lengths(FamilyTree, {"title": title, **fields})

    is_public = payload.flag("isPublic", False)
    upload = payload.file("file")
    gedcom_path = _save_gedcom(store, upload, is_public) if upload else None

    tree = FamilyTree(
        user_id=user.id,
        title=title,
        gedcom_path=gedcom_path,
        is_public=is_public,
        **fields,
    )
    try:
        db.add(tree)
        db.commit()
    except Exception:
        db.rollback()
        store.delete_stored(gedcom_path)
        raise
    db.refresh(tree)

    if gedcom_path:
        rebuild_tree_people(db, store, tree.id, gedcom_path)

    log_activity(db, user.id, SECTION, f"Created tree: {title}")
    return tree


def update_tree(db: Session, store: FileStore, user, tree: FamilyTree, payload: Payload) -> FamilyTree:
    title = payload.text("title") if payload.has("title") else tree.title
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    fields = _text_fields(payload, tree)
    ensure_max_lengths(FamilyTree, {"title": title, **fields})

    is_public = payload.flag("isPublic", bool(tree.is_public))
    upload = payload.file("file")
    old_path = tree.gedcom_path

    new_path = None
    relocated = old_path
    try:
        if upload:
            new_path = _save_gedcom(store, upload, is_public)
            tree.gedcom_path = new_path
        elif old_path:
            relocated = store.relocate(old_path, is_public)
            tree.gedcom_path = relocated

        tree.title = title
        for attr, value in fields.items():
            setattr(tree, attr, value)
        tree.is_public = is_public
        db.commit()
    except Exception:
        db.rollback()
        store.delete_stored(new_path)
        if relocated != old_path:
            store.relocate(relocated, not is_public)
        raise

    if new_path:
        old = store.resolve_stored_path(old_path)
        if old is not None and old != store.resolve_stored_path(new_path):
            store.delete_file(old)
    db.refresh(tree)

    if upload:
        rebuild_tree_people(db, store, tree.id, new_path)

    log_activity(db, user.id, SECTION, f"Updated tree: {title}")
    return tree


def delete_tree(db: Session, store: FileStore, user, tree: FamilyTree) -> None:
    title, gedcom_path, tree_id = tree.title, tree.gedcom_path, tree.id
    db.execute(delete(Person).where(Person.tree_id == tree_id))
    db.delete(tree)
    db.commit()
    store.delete_stored(gedcom_path)

    log_activity(db, user.id, SECTION, f"Deleted tree: {title or tree_id}")


def gedcom_file(store: FileStore, tree: FamilyTree) -> Path:
    path = store.resolve_stored_path(tree.gedcom_path)
    if path is None or not path.is_file():
        if tree.gedcom_path:
            logger.warning("Tree %s references missing file %s", tree.id, tree.gedcom_path)
        raise HTTPException(status_code=404, detail="File not found")
    return path
