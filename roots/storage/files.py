"""Local disk storage for uploaded files.

Stored paths are persisted as strings: public files as
``/uploads/<kind>/<name>`` (web servable) and private files as
``private/<kind>/<name>``. ``StoredFile`` is the parsed form of such a string;
nothing outside this module looks at the prefixes.

The store is permission blind, callers decide what is public.
"""
import logging
import os
import secrets
import shutil
from dataclasses import dataclass, replace
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import BinaryIO

from roots.config import settings

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/uploads/"
PRIVATE_PREFIX = "private/"
CHUNK_SIZE = 1024 * 1024


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"

    @classmethod
    def from_flag(cls, is_public: bool) -> "Visibility":
        return cls.PUBLIC if is_public else cls.PRIVATE


class FileTooLarge(Exception):
    def __init__(self, filename: str, limit_bytes: int):
        super().__init__(f"{filename or 'File'} is larger than {limit_bytes // (1024 * 1024)}MB")
        self.filename = filename
        self.limit_bytes = limit_bytes


@dataclass(frozen=True)
class StoredFile:
    visibility: Visibility
    kind: str
    filename: str

    @classmethod
    def parse(cls, value: str | None) -> "StoredFile | None":
        if not value:
            return None
        text = str(value)
        if text.startswith(PUBLIC_PREFIX):
            visibility, rest = Visibility.PUBLIC, text[len(PUBLIC_PREFIX):]
        elif text.startswith(PRIVATE_PREFIX):
            visibility, rest = Visibility.PRIVATE, text[len(PRIVATE_PREFIX):]
        else:
            return None
        parts = rest.split("/")
        if len(parts) != 2 or any(p in ("", ".", "..") for p in parts):
            return None
        return cls(visibility, parts[0], parts[1])

    def serialize(self) -> str:
        prefix = PUBLIC_PREFIX if self.visibility is Visibility.PUBLIC else PRIVATE_PREFIX
        return f"{prefix}{self.kind}/{self.filename}"

    @property
    def is_public(self) -> bool:
        return self.visibility is Visibility.PUBLIC

    def with_visibility(self, visibility: Visibility) -> "StoredFile":
        return replace(self, visibility=visibility)

    def __str__(self) -> str:
        return self.serialize()


def public_url(value: str | None) -> str | None:
    """The stored path if it is web servable, else None."""
    stored = StoredFile.parse(value)
    return stored.serialize() if stored and stored.is_public else None


class FileStore:
    def __init__(self, public_root: str | Path, private_root: str | Path):
        self.public_root = Path(public_root).resolve()
        self.private_root = Path(private_root).resolve()

    def root_for(self, visibility: Visibility) -> Path:
        return self.public_root if visibility is Visibility.PUBLIC else self.private_root

    def path_for(self, stored: StoredFile) -> Path:
        return self.root_for(stored.visibility) / stored.kind / stored.filename

    def resolve_stored_path(self, value: str | None) -> Path | None:
        stored = StoredFile.parse(value)
        if stored is None:
            return None
        return self.path_for(stored)

    def ensure_dirs(self, kinds) -> None:
        for kind in kinds:
            for visibility in Visibility:
                (self.root_for(visibility) / kind).mkdir(parents=True, exist_ok=True)

    def save(self, stream: BinaryIO, original_name: str | None, kind: str,
             visibility: Visibility, max_bytes: int | None = None) -> tuple[StoredFile, int]:
        """Write an upload straight into the subtree for ``visibility``.

        Returns the stored file and its size in bytes.
        """
        ext = os.path.splitext(original_name or "")[1].lower()
        stored = StoredFile(visibility, kind, f"{secrets.token_hex(16)}{ext}")
        dest = self.path_for(stored)
        dest.parent.mkdir(parents=True, exist_ok=True)

        size = 0
        with open(dest, "wb") as out:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if max_bytes is not None and size > max_bytes:
                    out.close()
                    self.delete_file(dest)
                    raise FileTooLarge(original_name or "", max_bytes)
                out.write(chunk)
        return stored, size

    def move_file(self, src: Path, dest: Path) -> None:
        if src.resolve() == dest.resolve():
            return
        if not src.exists():
            return
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(src), str(dest))

    def delete_file(self, path: Path | None) -> None:
        if path is None:
            return
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to delete %s: %s", path, e)

    def delete_stored(self, value: str | None) -> None:
        self.delete_file(self.resolve_stored_path(value))

    def relocate(self, value: str | None, make_public: bool) -> str | None:
        """Move a stored file between subtrees to match ``make_public``.

        Returns the stored path to persist; unchanged when the file is already
        in place, unrecognised or missing on disk.
        """
        stored = StoredFile.parse(value)
        if stored is None or stored.is_public == make_public:
            return value
        src = self.path_for(stored)
        if not src.exists():
            return value
        target = stored.with_visibility(Visibility.from_flag(make_public))
        try:
            self.move_file(src, self.path_for(target))
        except OSError as e:
            logger.warning("Failed to move %s to %s subtree: %s", src, target.visibility.value, e)
            return value
        return target.serialize()


@lru_cache
def get_file_store() -> FileStore:
    return FileStore(settings.uploads_dir, settings.private_uploads_dir)
