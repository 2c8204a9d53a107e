
from datetime import datetime
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

class _CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True

class TreeOwnerOut(_CamelModel):
    id: int | None = None
    full_name: str | None = None
    email: str | None = None

class TreeBaseOut(_CamelModel):
    id: int
    title: str
    description: str | None = None
    archive_source: str = ""
    document_code: str = ""
    is_public: bool
    has_gedcom: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

class TreePublicOut(TreeBaseOut):
    owner: str
    gedcom_url: str | None = None

class TreeMyOut(TreeBaseOut):
    gedcom_url: str | None = None
    members: int = 0

class TreeAdminOut(TreeBaseOut):
    members: int = 0
    owner: TreeOwnerOut

class PersonOut(_CamelModel):
    id: int
    name: str

class PeopleOut(BaseModel):
    people: list[PersonOut]
