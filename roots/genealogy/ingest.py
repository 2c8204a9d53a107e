import logging

from sqlalchemy import delete, insert
from sqlalchemy.orm import Session

from roots.genealogy.gedcom import parse_gedcom_people
from roots.models.tree import Person
from roots.storage.files import FileStore

logger = logging.getLogger(__name__)

BATCH_SIZE = 500
MAX_NAME_LENGTH = 255


def read_gedcom_people(store: FileStore, gedcom_path: str | None) -> list[dict]:
    path = store.resolve_stored_path(gedcom_path)
    if path is None or not path.is_file():
        return []
    try:
        content = path.read_text(encoding="utf-8-sig", errors="replace")
    except OSError as e:
        logger.warning("Could not read GEDCOM %s: %s", path, e)
        return []
    return parse_gedcom_people(content)


def rebuild_tree_people(db: Session, store: FileStore, tree_id: int, gedcom_path: str | None) -> int | None:
    """Replace every Person row of ``tree_id`` with the names in its GEDCOM file.

    Delete and inserts commit as one transaction. Failures roll back to the
    previous rows and are only logged; the tree itself is already committed.
    Returns the number of people inserted, or None on failure.
    """
    people = read_gedcom_people(store, gedcom_path)
    try:
        db.execute(delete(Person).where(Person.tree_id == tree_id))
        for start in range(0, len(people), BATCH_SIZE):
            rows = [
                {"tree_id": tree_id, "name": p["name"][:MAX_NAME_LENGTH]}
                for p in people[start:start + BATCH_SIZE]
            ]
            db.execute(insert(Person), rows)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to rebuild people for tree %s", tree_id)
        return None
    return len(people)
