"""Helpers for multipart/JSON create and update bodies.

Update semantics: a field absent from the body keeps its previous value, a
field present but blank clears it.
"""
import json
import re
from dataclasses import dataclass, field
from typing import Any

from fastapi import HTTPException, Request
from pydantic.alias_generators import to_camel
from starlette.datastructures import UploadFile

_ID_PATTERN = re.compile(r"[0-9]{1,18}")


def clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_boolean(value: Any, fallback: bool) -> bool:
    if value is None:
        return fallback
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    return fallback


def parse_id(value: Any, label: str) -> int:
    """Strict positive integer id; anything else is a 400, not a 404."""
    text = "" if value is None else str(value)
    if not _ID_PATTERN.fullmatch(text) or int(text) <= 0:
        raise HTTPException(status_code=400, detail=f"Invalid {label} id")
    return int(text)


def ensure_max_lengths(model, values: dict) -> None:
    """400 when a text value is longer than its column allows."""
    columns = model.__table__.columns
    for attr, value in values.items():
        limit = getattr(columns[attr].type, "length", None)
        if value is not None and limit is not None and len(value) > limit:
            raise HTTPException(status_code=400,
                                detail=f"{to_camel(attr)} must be at most {limit} characters")


@dataclass
class Payload:
    fields: dict = field(default_factory=dict)
    files: dict = field(default_factory=dict)

    def has(self, key: str) -> bool:
        return key in self.fields and self.fields[key] is not None

    def text(self, key: str) -> str | None:
        return clean_text(self.fields.get(key))

    def pick(self, key: str, fallback: str | None) -> str | None:
        if key not in self.fields:
            return fallback
        return clean_text(self.fields[key])

    def flag(self, key: str, fallback: bool) -> bool:
        if not self.has(key):
            return fallback
        return parse_boolean(self.fields[key], fallback)

    def file(self, key: str) -> UploadFile | None:
        upload = self.files.get(key)
        if upload is None or not upload.filename:
            return None
        return upload


async def read_payload(request: Request) -> Payload:
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Malformed JSON body")
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Expected a JSON object")
        return Payload(fields=body)

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        payload = Payload()
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                payload.files.setdefault(key, value)
            else:
                payload.fields.setdefault(key, value)
        return payload

    return Payload()
