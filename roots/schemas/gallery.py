
from datetime import datetime
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

class UploaderOut(BaseModel):
    id: int
    full_name: str
    email: str | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class GalleryItemOut(BaseModel):
    id: int
    title: str
    description: str | None = None
    image_path: str
    is_public: bool
    archive_source: str | None = None
    document_code: str | None = None
    location: str | None = None
    year: str | None = None
    photographer: str | None = None
    uploaded_by: int
    uploader: UploaderOut | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class GalleryListOut(BaseModel):
    gallery: list[GalleryItemOut]

class GalleryItemEnvelope(BaseModel):
    item: GalleryItemOut

class GalleryMutationOut(BaseModel):
    message: str
    id: int
    item: GalleryItemOut
