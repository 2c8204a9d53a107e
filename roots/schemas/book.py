
from datetime import datetime
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

class BookPublicOut(BaseModel):
    id: int
    title: str
    author: str | None = None
    description: str | None = None
    category: str | None = None
    archive_source: str = ""
    document_code: str = ""
    file_url: str | None = None
    cover_url: str | None = None
    file_size: int | None = None
    downloads: int = 0
    created_at: datetime | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class BookMyOut(BookPublicOut):
    is_public: bool

class BookAdminOut(BookMyOut):
    uploaded_by: str
